"""
Pod restarter controller.

Polls cluster Events for a failure signature (by default the
FailedCreatePodSandBox / "veth name already exists" sandbox error),
waits a short grace period for Pods to self heal, then deletes every
matching Pod that still exists, is owned by a controller, is not already
terminating and is still unhealthy, so its owner recreates it.
"""

import argparse
import logging
import sys
import time
from typing import Callable, Optional

from pod_restarter import __version__
from pod_restarter.config import ConfigError, ReconcilerConfig, build_config
from pod_restarter.detectors import discover_candidates
from pod_restarter.k8s_client import ClusterAuthError, FetchError, KubeClient
from pod_restarter.models import IterationReport
from pod_restarter.remediators import PodRemediator
from pod_restarter.state import ReconcileSession
from pod_restarter.validators import pod_checks

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Reconciler:
    """Runs the discover / grace sleep / validate-and-act loop"""

    def __init__(self, kube, cfg: ReconcilerConfig, session: Optional[ReconcileSession] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.kube = kube
        self.cfg = cfg
        self.session = session or ReconcileSession()
        self.remediator = PodRemediator(kube, dry_run=cfg.dry_run)
        self._sleep = sleep
        self._clock = clock

    def run_one_iteration(self) -> IterationReport:
        """Run a single reconciliation pass and return its counts"""
        start = self._clock()
        report = IterationReport(iteration=self.session.iteration)

        try:
            report.events_matched, candidates = discover_candidates(
                self.kube, self.cfg, self.session.iteration)
        except FetchError as e:
            logger.error(f"Candidate discovery failed: {e}")
            report.fetch_failed = True
            candidates = {}

        report.candidates = len(candidates)

        if candidates:
            # allow Pending Pods a few seconds to self heal
            self._sleep(self.cfg.grace_period)

        for name, namespace in candidates.items():
            try:
                reject = pod_checks(self.kube, name, namespace)
                if reject is not None:
                    report.record_rejection(reject)
                    continue
                report.record_outcome(self.remediator.remediate(name, namespace))
            except Exception:
                logger.exception(f"Unexpected error while processing Pod {namespace}/{name}")
                report.errored += 1

        report.duration = self._clock() - start
        self.session.record(report)
        logger.info(f"Iteration {report.iteration} finished: {report.as_dict()}")
        return report

    def run_forever(self, max_iterations: Optional[int] = None):
        """Loop until interrupted (or until max_iterations passes have completed)"""
        logger.info(
            f"Running every {self.cfg.polling_interval:g} seconds "
            f"(reason={self.cfg.reason!r}, namespace={self.cfg.namespace or '<all>'}, "
            f"dry_run={self.cfg.dry_run})"
        )
        while max_iterations is None or self.session.iteration < max_iterations:
            start = self._clock()
            try:
                self.run_one_iteration()
            except Exception:
                logger.exception(f"Unexpected error in iteration {self.session.iteration}")

            remaining = self.cfg.polling_interval - (self._clock() - start)
            self._sleep(max(0.0, remaining))
            self.session.advance()


def log_inventory(kube, namespace: str):
    try:
        pods = kube.list_pods(namespace)
    except FetchError as e:
        logger.warning(f"Could not list Pods at startup: {e}")
        return
    logger.info(f"There is a TOTAL of {len(pods)} Pods in {namespace or 'the cluster'}")


def setup_logging(level: str):
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
    # the kubernetes client logs every request at DEBUG
    logging.getLogger("kubernetes").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pod-restarter",
        description="Delete Pods that are failing with a particular Event reason",
    )
    parser.add_argument("--config", help="YAML file with configuration values")
    parser.add_argument("--dry-run", action="store_true", default=None,
                        help="enable dry run mode (no changes are made, only logged)")
    parser.add_argument("--namespace", help="kubernetes namespace (default: all namespaces)")
    parser.add_argument("--reason", help="restart Pods that match Event Reason")
    parser.add_argument("--error-message", dest="message",
                        help="restart Pods whose Event message contains this text")
    parser.add_argument("--polling-interval", type=float,
                        help="number of seconds between iterations")
    parser.add_argument("--grace-period", type=float,
                        help="seconds to let Pods self heal before they are checked")
    parser.add_argument("--kubeconfig", help="absolute path to the kubeconfig file")
    parser.add_argument("--context", help="kubeconfig context to use")
    parser.add_argument("--request-timeout", type=float,
                        help="timeout in seconds for each Kubernetes API call")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    overrides = {k: v for k, v in vars(args).items() if k != "config"}

    try:
        cfg = build_config(config_file=args.config, overrides=overrides)
    except ConfigError as e:
        print(f"pod-restarter: configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(cfg.log_level)
    logger.info(f"Pod restarter {__version__} started")

    try:
        kube = KubeClient.connect(cfg.kubeconfig, cfg.context, request_timeout=cfg.request_timeout)
    except ClusterAuthError as e:
        logger.error(str(e))
        return 1

    log_inventory(kube, cfg.namespace)
    reconciler = Reconciler(kube, cfg)
    try:
        reconciler.run_forever()
    except KeyboardInterrupt:
        logger.info(f"Shutting down, session summary: {reconciler.session.summary()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
