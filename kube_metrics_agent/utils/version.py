import subprocess

import kube_metrics_agent


def get_version() -> str:
    # the version string was patched by a release - return __version__ which will be correct
    if kube_metrics_agent.__version__ != "dev":
        return kube_metrics_agent.__version__

    # we are running from an unreleased dev version
    try:
        tag = subprocess.check_output(["git", "describe", "--tags"], stderr=subprocess.DEVNULL).decode().strip()
        branch = (
            subprocess.check_output(["git", "rev-parse", "--abbrev-ref", "HEAD"], stderr=subprocess.DEVNULL)
            .decode()
            .strip()
        )
        status = subprocess.check_output(["git", "status", "--porcelain"], stderr=subprocess.DEVNULL).decode().strip()
        dirty = "-dirty" if status else ""

        return f"{tag}-{branch}{dirty}"

    except (subprocess.CalledProcessError, OSError):
        return kube_metrics_agent.__version__
