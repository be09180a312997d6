import pytest
import yaml

from kube_installer import bootstrap
from kube_installer.bootstrap import (
    ClusterState,
    choose_role,
    cluster_state,
    init_master,
    join_worker,
    render_kubeadm_config,
    setup_kubectl_config,
)
from kube_installer.config import NodeRole, RunConfig
from kube_installer.policy import InstallError
from kube_installer.prompts import AnswersPrompter

JOIN = "kubeadm join 10.0.0.5:6443 --token abcdef.0123456789abcdef --discovery-token-ca-cert-hash sha256:deadbeef"


@pytest.fixture
def master_cfg():
    return RunConfig(node_ip="10.0.0.5", hostname="master-1", role=NodeRole.MASTER)


def _write_admin_conf(cfg):
    cfg.admin_conf.parent.mkdir(parents=True, exist_ok=True)
    cfg.admin_conf.write_text("apiVersion: v1\nkind: Config\n")


def _init_writes_admin_conf(cfg):
    def _init(args):
        _write_admin_conf(cfg)
        return (0, "Your Kubernetes control-plane has initialized successfully!")
    return _init


class TestKubeadmConfig:
    def test_documents(self, cfg):
        text = render_kubeadm_config("10.0.0.5", cfg)
        init, cluster = list(yaml.safe_load_all(text))

        assert init["kind"] == "InitConfiguration"
        assert init["localAPIEndpoint"] == {"advertiseAddress": "10.0.0.5", "bindPort": 6443}
        assert init["nodeRegistration"]["criSocket"] == "unix:///run/containerd/containerd.sock"
        assert cluster["kind"] == "ClusterConfiguration"
        assert cluster["networking"] == {"podSubnet": "10.244.0.0/16", "serviceSubnet": "10.96.0.0/12"}
        assert cluster["imageRepository"] == "registry.cn-hangzhou.aliyuncs.com/google_containers"

    def test_advertise_address_literal(self, cfg):
        assert "advertiseAddress: 10.0.0.5" in render_kubeadm_config("10.0.0.5", cfg)


@pytest.mark.parametrize("answer, role", [("1", NodeRole.MASTER), ("worker", NodeRole.WORKER)])
def test_choose_role(answer, role):
    assert choose_role(AnswersPrompter({"role": answer})) is role


def test_choose_role_rejects_unknown_answer():
    with pytest.raises(InstallError):
        choose_role(AnswersPrompter({"role": "3"}))


def test_role_is_chosen_once(master_cfg):
    with pytest.raises(ValueError):
        master_cfg.with_role(NodeRole.WORKER)


class TestClusterState:
    def test_uninitialized(self, cfg, make_runner):
        assert cluster_state(make_runner(), cfg) is ClusterState.UNINITIALIZED

    def test_healthy(self, cfg, make_runner):
        _write_admin_conf(cfg)
        assert cluster_state(make_runner(active={"kubelet"}), cfg) is ClusterState.HEALTHY

    def test_unhealthy_when_api_down(self, cfg, make_runner):
        _write_admin_conf(cfg)
        runner = make_runner(active={"kubelet"}, responses={"kubectl": (1, "", "connection refused")})
        assert cluster_state(runner, cfg) is ClusterState.UNHEALTHY


class TestInitMaster:
    def test_fresh_init(self, cfg, make_runner, master_cfg):
        runner = make_runner()
        runner.responses["kubeadm init"] = _init_writes_admin_conf(cfg)

        assert init_master(runner, cfg, master_cfg, AnswersPrompter({})) is True

        assert "advertiseAddress: 10.0.0.5" in cfg.kubeadm_config.read_text()
        assert runner.ran(f"kubeadm init --config {cfg.kubeadm_config} --upload-certs")
        assert (cfg.root_home / ".kube" / "config").read_text() == cfg.admin_conf.read_text()
        assert any("apply -f" in line and "calico" in line for line in runner.lines())
        assert not runner.ran("kubeadm reset")

    def test_prepull_failure_is_not_fatal(self, cfg, make_runner, master_cfg):
        runner = make_runner(responses={"kubeadm config images pull": (1, "", "i/o timeout")})
        runner.responses["kubeadm init"] = _init_writes_admin_conf(cfg)
        assert init_master(runner, cfg, master_cfg, AnswersPrompter({})) is True

    def test_init_failure_aborts_with_its_exit_code(self, cfg, make_runner, master_cfg):
        runner = make_runner(responses={"kubeadm init": (3, "", "[ERROR Port-6443]: Port 6443 is in use")})
        with pytest.raises(InstallError) as exc:
            init_master(runner, cfg, master_cfg, AnswersPrompter({}))
        assert exc.value.step == "cluster.init"
        assert exc.value.exit_code == 3

    def test_healthy_cluster_is_not_reinitialized(self, cfg, make_runner, master_cfg):
        _write_admin_conf(cfg)
        runner = make_runner(active={"kubelet"}, responses={
            "kubectl --kubeconfig": (0, "NAME STATUS\nmaster-1 Ready control-plane\n"),
            f"kubectl --kubeconfig={cfg.admin_conf} get pods": (0, "calico-node-x7k 1/1 Running\n"),
        })

        assert init_master(runner, cfg, master_cfg, AnswersPrompter({})) is False

        assert not runner.ran("kubeadm")
        assert not any("apply -f" in line for line in runner.lines())

    def test_healthy_cluster_without_cni_gets_cni(self, cfg, make_runner, master_cfg):
        _write_admin_conf(cfg)
        runner = make_runner(active={"kubelet"})
        init_master(runner, cfg, master_cfg, AnswersPrompter({}))
        assert any("apply -f" in line for line in runner.lines())
        assert not runner.ran("kubeadm init")

    def test_unhealthy_cluster_is_reset_then_initialized(self, cfg, make_runner, master_cfg):
        _write_admin_conf(cfg)
        runner = make_runner()
        assert init_master(runner, cfg, master_cfg, AnswersPrompter({})) is True
        lines = runner.lines()
        assert lines.index("kubeadm reset -f") < next(i for i, l in enumerate(lines) if l.startswith("kubeadm init"))

    def test_cni_failure_is_not_fatal(self, cfg, make_runner, master_cfg):
        runner = make_runner(responses={f"kubectl --kubeconfig={cfg.admin_conf} apply": (1, "", "unable to fetch")})
        runner.responses["kubeadm init"] = _init_writes_admin_conf(cfg)
        assert init_master(runner, cfg, master_cfg, AnswersPrompter({})) is True


class TestJoinWorker:
    def test_join_command_runs_verbatim(self, cfg, make_runner):
        runner = make_runner()
        assert join_worker(runner, cfg, AnswersPrompter({"join_command": JOIN})) is True
        assert ["bash", "-c", JOIN] in runner.calls

    def test_join_failure_propagates_exit_code(self, cfg, make_runner):
        runner = make_runner(responses={"bash -c kubeadm join": (2, "", "couldn't validate the identity of the API Server")})
        with pytest.raises(InstallError) as exc:
            join_worker(runner, cfg, AnswersPrompter({"join_command": JOIN}))
        assert exc.value.step == "cluster.join"
        assert exc.value.exit_code == 2

    def test_empty_join_command_aborts(self, cfg, make_runner):
        runner = make_runner()
        with pytest.raises(InstallError):
            join_worker(runner, cfg, AnswersPrompter({"join_command": "  "}))
        assert not runner.ran("bash")

    def test_already_joined_is_skipped(self, cfg, make_runner):
        cfg.kubelet_conf.parent.mkdir(parents=True)
        cfg.kubelet_conf.write_text("kind: Config\n")
        runner = make_runner(active={"kubelet"})
        prompter = AnswersPrompter({})
        assert join_worker(runner, cfg, prompter) is False
        assert prompter.asked == []

    def test_stale_join_is_reset_first(self, cfg, make_runner):
        cfg.kubelet_conf.parent.mkdir(parents=True)
        cfg.kubelet_conf.write_text("kind: Config\n")
        runner = make_runner()
        join_worker(runner, cfg, AnswersPrompter({"join_command": JOIN}))
        assert runner.lines().index("kubeadm reset -f") < runner.lines().index(f"bash -c {JOIN}")


class TestKubectlConfig:
    def test_without_admin_conf(self, cfg):
        assert setup_kubectl_config(cfg, AnswersPrompter({})) == []

    def test_extra_user(self, cfg, monkeypatch):
        _write_admin_conf(cfg)
        uid, gid = bootstrap.os.getuid(), bootstrap.os.getgid()

        class Entry:
            pw_dir = "/home/alice"
            pw_uid = uid
            pw_gid = gid

        monkeypatch.setattr(bootstrap.pwd, "getpwnam", lambda name: Entry)
        written = setup_kubectl_config(cfg, AnswersPrompter({"kubectl_extra_user": "yes", "kubectl_user": "alice"}))

        assert written == [cfg.root_home / ".kube" / "config", cfg.home_dir / "alice" / ".kube" / "config"]
        assert (cfg.home_dir / "alice" / ".kube" / "config").exists()

    def test_unknown_user_is_skipped(self, cfg, monkeypatch):
        _write_admin_conf(cfg)

        def missing(name):
            raise KeyError(name)

        monkeypatch.setattr(bootstrap.pwd, "getpwnam", missing)
        written = setup_kubectl_config(cfg, AnswersPrompter({"kubectl_extra_user": True, "kubectl_user": "ghost"}))
        assert written == [cfg.root_home / ".kube" / "config"]
