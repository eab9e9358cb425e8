"""PodSleuth - root cause diagnosis for non-ready Kubernetes pods."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("podsleuth")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
