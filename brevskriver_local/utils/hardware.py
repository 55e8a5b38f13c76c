"""
Hardware acceleration probe for the local model runtime
"""

from dataclasses import dataclass
from pathlib import Path
import glob
import logging
import os
import platform
import shutil

ACCELERATION_ENV = "BREVSKRIVER_ACCELERATION"

logger = logging.getLogger("brevskriver.hardware")


@dataclass(frozen=True)
class AccelerationInfo:
    available: bool
    backend: str = "none"
    detail: str = ""


def detect_acceleration() -> AccelerationInfo:
    """
    Detect whether this machine exposes GPU acceleration for local inference.

    ``BREVSKRIVER_ACCELERATION`` overrides detection: ``force`` reports an
    accelerator, ``none`` reports none, ``auto`` (default) probes the system.

    Returns:
        AccelerationInfo describing the first backend found
    """
    override = os.environ.get(ACCELERATION_ENV, "auto").strip().lower()
    if override == "force":
        return AccelerationInfo(True, "forced", f"{ACCELERATION_ENV}=force")
    if override == "none":
        return AccelerationInfo(False, "none", f"{ACCELERATION_ENV}=none")

    if platform.system() == "Darwin" and platform.machine() == "arm64":
        return AccelerationInfo(True, "metal", "Apple Silicon GPU")

    if shutil.which("nvidia-smi"):
        return AccelerationInfo(True, "cuda", "NVIDIA driver found")

    if shutil.which("rocminfo") or Path("/dev/kfd").exists():
        return AccelerationInfo(True, "rocm", "AMD ROCm runtime found")

    render_nodes = glob.glob("/dev/dri/renderD*")
    if render_nodes:
        return AccelerationInfo(True, "vulkan", f"GPU render node {render_nodes[0]}")

    logger.debug("No GPU acceleration detected")
    return AccelerationInfo(False, "none", "No supported GPU detected")
