import pytest

from kube_installer.cleanup import cleanup, flush_iptables, virtual_links
from kube_installer.ledger import PhaseLedger
from kube_installer.prompts import AnswersPrompter
from kube_installer.repos import configure_repositories

IP_LINKS = """\
1: lo: <LOOPBACK,UP,LOWER_UP> mtu 65536 qdisc noqueue state UNKNOWN mode DEFAULT
2: eth0: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500 qdisc mq state UP mode DEFAULT
5: cni0: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1450 qdisc noqueue state UP mode DEFAULT
6: vxlan.calico: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1450 qdisc noqueue state UNKNOWN
7: cali12ab34cd@if3: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1450 qdisc noqueue state UP
8: tunl0@NONE: <NOARP,UP,LOWER_UP> mtu 1480 qdisc noqueue state UNKNOWN
"""


@pytest.fixture
def installed(cfg, make_runner):
    """A root tree that looks like a finished master install."""
    cfg.repos_dir.mkdir(parents=True)
    (cfg.repos_dir / "CentOS-Base.repo").write_text("[base]\nmirrorlist=http://mirrorlist.centos.org\n")
    configure_repositories(make_runner(), cfg)

    for rel in ("var/lib/kubelet/pki", "var/lib/etcd/member", "etc/cni/net.d", "etc/containerd"):
        cfg.path(rel).mkdir(parents=True)
    cfg.admin_conf.parent.mkdir(parents=True)
    cfg.admin_conf.write_text("kind: Config\n")
    cfg.kubeadm_config.parent.mkdir(parents=True)
    cfg.kubeadm_config.write_text("kind: InitConfiguration\n")
    (cfg.root_home / ".kube").mkdir(parents=True)
    (cfg.home_dir / "alice" / ".kube").mkdir(parents=True)
    for path in (cfg.crictl_config, cfg.kubelet_sysconfig):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("x\n")
    PhaseLedger(cfg.ledger_path).record("preflight", node_ip="10.0.0.5")
    return cfg


def test_virtual_links_matches_pod_network_devices(make_runner):
    runner = make_runner(responses={"ip -o link show": (0, IP_LINKS)})
    assert virtual_links(runner) == ["cni0", "vxlan.calico", "cali12ab34cd", "tunl0"]


def test_cleanup_restores_host(installed, make_runner):
    cfg = installed
    runner = make_runner(commands={"kubeadm"}, responses={"ip -o link show": (0, IP_LINKS)})

    cleanup(runner, cfg, AnswersPrompter({}))

    assert runner.ran("systemctl stop kubelet")
    assert runner.ran("systemctl stop containerd")
    assert runner.ran("kubeadm reset -f")
    assert runner.ran("ip link delete cni0")
    assert runner.ran("ip link delete cali12ab34cd")
    assert not runner.ran("ip link delete eth0")
    assert runner.ran("iptables -t nat -F")
    assert runner.ran("iptables -P FORWARD ACCEPT")

    for rel in ("var/lib/kubelet", "var/lib/etcd", "etc/cni/net.d", "etc/containerd"):
        assert not cfg.path(rel).exists()
    assert list(cfg.kubernetes_dir.iterdir()) == []
    assert not cfg.kubeadm_config.exists()
    assert not (cfg.root_home / ".kube").exists()
    assert not (cfg.home_dir / "alice" / ".kube").exists()
    assert not cfg.crictl_config.exists()
    assert not cfg.kubelet_sysconfig.exists()

    assert sorted(p.name for p in cfg.repos_dir.glob("*.repo")) == ["CentOS-Base.repo"]
    assert "mirrorlist.centos.org" in (cfg.repos_dir / "CentOS-Base.repo").read_text()
    assert PhaseLedger(cfg.ledger_path).entries() == []
    assert not cfg.ledger_path.parent.exists()


def test_packages_kept_unless_confirmed(installed, make_runner):
    runner = make_runner()
    cleanup(runner, installed, AnswersPrompter({}))
    assert not runner.ran("yum remove")


def test_packages_removed_when_confirmed(installed, make_runner):
    runner = make_runner()
    cleanup(runner, installed, AnswersPrompter({"remove_packages": "y"}))
    assert runner.ran("yum remove -y kubeadm kubectl kubelet kubernetes-cni containerd.io")
    assert runner.ran("yum autoremove -y")


def test_failing_steps_do_not_stop_cleanup(installed, make_runner):
    runner = make_runner(commands={"kubeadm"}, responses={
        "systemctl stop": (5, "", "Unit kubelet.service not loaded."),
        "kubeadm reset": (1, "", "boom"),
    })
    cleanup(runner, installed, AnswersPrompter({}))
    assert runner.ran("iptables -t filter -F")
    assert not installed.path("var/lib/etcd").exists()


def test_docker_restarted_only_when_present(cfg, make_runner):
    runner = make_runner(responses={"systemctl list-unit-files": (0, "docker.service  enabled\n")})
    cleanup(runner, cfg, AnswersPrompter({}))
    assert runner.ran("systemctl restart docker")

    runner = make_runner(responses={"systemctl list-unit-files": (0, "containerd.service  enabled\n")})
    cleanup(runner, cfg, AnswersPrompter({}))
    assert not runner.ran("systemctl restart docker")


def test_flush_iptables_order(make_runner):
    runner = make_runner()
    flush_iptables(runner)
    assert runner.lines()[:2] == ["iptables -t filter -F", "iptables -t filter -X"]
    assert runner.lines()[-3:] == ["iptables -P INPUT ACCEPT", "iptables -P FORWARD ACCEPT", "iptables -P OUTPUT ACCEPT"]
