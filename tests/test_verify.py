from kube_installer.config import NodeRole, RunConfig
from kube_installer.verify import display_completion, verify_installation, wait_for_ready_node

NOT_READY = (0, "NAME       STATUS     ROLES           AGE\nmaster-1   NotReady   control-plane   20s\n")
READY = (0, "NAME       STATUS   ROLES           AGE\nmaster-1   Ready    control-plane   90s\n")


def _nodes_sequence(*responses):
    queue = list(responses)

    def _next(args):
        return queue.pop(0) if len(queue) > 1 else queue[0]
    return _next


def test_wait_stops_as_soon_as_node_is_ready(cfg, make_runner):
    runner = make_runner(responses={"kubectl": _nodes_sequence(NOT_READY, READY)})
    assert wait_for_ready_node(runner, cfg) is True
    assert runner.count("kubectl") == 2


def test_wait_gives_up_after_configured_attempts(cfg, make_runner):
    runner = make_runner(responses={"kubectl": NOT_READY})
    assert wait_for_ready_node(runner, cfg) is False
    assert runner.count("kubectl") == cfg.ready_poll_attempts


def test_not_ready_master_is_reported_not_fatal(cfg, make_runner):
    runner = make_runner(responses={"kubectl": NOT_READY})
    run_cfg = RunConfig(node_ip="10.0.0.5", hostname="master-1", role=NodeRole.MASTER)
    assert verify_installation(runner, cfg, run_cfg) is False


def test_worker_only_checks_kubelet(cfg, make_runner):
    runner = make_runner()
    run_cfg = RunConfig(node_ip="10.0.0.6", hostname="worker-1", role=NodeRole.WORKER)
    assert verify_installation(runner, cfg, run_cfg) is True
    assert not runner.ran("kubectl")


def test_completion_prints_join_command(cfg, make_runner, capsys):
    runner = make_runner(responses={"kubeadm token create": (0, "kubeadm join 10.0.0.5:6443 --token t\n")})
    run_cfg = RunConfig(node_ip="10.0.0.5", hostname="master-1", role=NodeRole.MASTER)
    display_completion(runner, cfg, run_cfg)
    out = capsys.readouterr().out
    assert "https://10.0.0.5:6443" in out
    assert "kubeadm join 10.0.0.5:6443 --token t" in out
