from kube_installer.constants import REPO_FILE_BASE, REPO_FILE_DOCKER_CE, REPO_FILE_KUBERNETES
from kube_installer.packages import install_required_packages
from kube_installer.repos import (
    configure_repositories,
    render_repo_files,
    repos_configured,
    restore_repositories,
)


def _seed_original_repos(cfg):
    cfg.repos_dir.mkdir(parents=True)
    (cfg.repos_dir / "CentOS-Base.repo").write_text("[base]\nmirrorlist=http://mirrorlist.centos.org\n")
    (cfg.repos_dir / "epel.repo").write_text("[epel]\n")


def test_rendered_files_point_at_mirrors(cfg):
    files = render_repo_files(cfg)
    assert set(files) == {REPO_FILE_BASE, REPO_FILE_DOCKER_CE, REPO_FILE_KUBERNETES}
    assert "baseurl=https://mirrors.aliyun.com/centos/$releasever/os/$basearch/" in files[REPO_FILE_BASE]
    assert "https://mirrors.aliyun.com/docker-ce/linux/centos/$releasever/$basearch/stable" in files[REPO_FILE_DOCKER_CE]
    assert "kubernetes-el7-$basearch" in files[REPO_FILE_KUBERNETES]


def test_configure_backs_up_and_writes(cfg, make_runner):
    _seed_original_repos(cfg)
    runner = make_runner()

    assert configure_repositories(runner, cfg) is True

    assert sorted(p.name for p in cfg.repos_backup_dir.iterdir()) == ["CentOS-Base.repo", "epel.repo"]
    assert not (cfg.repos_dir / "epel.repo").exists()
    assert repos_configured(cfg)
    assert runner.ran("yum clean all")
    assert runner.ran("yum makecache")


def test_configure_is_skipped_when_already_pointing_at_mirrors(cfg, make_runner):
    _seed_original_repos(cfg)
    configure_repositories(make_runner(), cfg)

    runner = make_runner()
    assert configure_repositories(runner, cfg) is False
    assert runner.calls == []


def test_backup_is_taken_once(cfg, make_runner):
    _seed_original_repos(cfg)
    configure_repositories(make_runner(), cfg)
    (cfg.repos_dir / REPO_FILE_KUBERNETES).unlink()

    configure_repositories(make_runner(), cfg)

    backup = (cfg.repos_backup_dir / "CentOS-Base.repo").read_text()
    assert "mirrorlist.centos.org" in backup


def test_makecache_failure_is_not_fatal(cfg, make_runner):
    runner = make_runner(responses={"yum makecache": (1, "", "Cannot retrieve repository metadata")})
    assert configure_repositories(runner, cfg) is True


def test_restore_puts_originals_back(cfg, make_runner):
    _seed_original_repos(cfg)
    configure_repositories(make_runner(), cfg)

    assert restore_repositories(cfg) is True

    names = sorted(p.name for p in cfg.repos_dir.glob("*.repo"))
    assert names == ["CentOS-Base.repo", "epel.repo"]
    assert "mirrorlist.centos.org" in (cfg.repos_dir / "CentOS-Base.repo").read_text()


def test_restore_without_backup_is_noop(cfg):
    cfg.repos_dir.mkdir(parents=True)
    (cfg.repos_dir / "kubernetes.repo").write_text("[kubernetes]\n")
    assert restore_repositories(cfg) is False
    assert (cfg.repos_dir / "kubernetes.repo").exists()


def test_failed_package_batch_does_not_stop_the_rest(make_runner):
    runner = make_runner(commands={"ip"}, responses={"yum install -y curl": (1, "", "No package curl available")})
    failed = install_required_packages(runner)
    assert failed == ["network tools"]
    assert runner.ran("yum install -y socat")
