"""Generate ``.mind`` tracking targets from composite images."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional, Union
from uuid import uuid4

from common.logging import get_logger

from ..errors import CompilationFailedError
from ..models import ARTarget
from .compiler import CompilerPort
from .workspace import temp_workspace

LOGGER = get_logger(__name__)


class GenerationStage(str, Enum):
    IDLE = "idle"
    WORKSPACE_CREATED = "workspace_created"
    IMAGE_WRITTEN = "image_written"
    COMPILER_INVOKED = "compiler_invoked"
    TARGET_HARVESTED = "target_harvested"


class ARTargetGenerator:
    """Wraps the external compiler with a private temp workspace per call.

    The target bytes are returned as produced; their format is never
    inspected beyond existence and non-emptiness.
    """

    def __init__(
        self,
        compiler: CompilerPort,
        temp_root: Optional[Union[str, Path]] = None,
    ) -> None:
        self._compiler = compiler
        self._temp_root = temp_root

    def generate(self, composite_image: bytes) -> ARTarget:
        if not composite_image:
            raise CompilationFailedError("Composite image is empty; nothing to compile")

        stage = GenerationStage.IDLE
        try:
            with temp_workspace(self._temp_root) as workspace:
                stage = GenerationStage.WORKSPACE_CREATED
                image_path = workspace.file(f"design_{uuid4().hex}.png")
                target_path = workspace.file(f"target_{uuid4().hex}.mind")
                try:
                    image_path.write_bytes(composite_image)
                except OSError as exc:
                    raise CompilationFailedError(f"Could not stage composite image: {exc}") from exc
                stage = GenerationStage.IMAGE_WRITTEN

                self._compiler.compile(image_path, target_path)
                stage = GenerationStage.COMPILER_INVOKED

                # A compiler can exit 0 without writing anything.
                if not target_path.is_file():
                    raise CompilationFailedError("MindAR compiler did not produce a .mind file")
                data = target_path.read_bytes()
                if not data:
                    raise CompilationFailedError("MindAR compiler produced an empty .mind file")
                stage = GenerationStage.TARGET_HARVESTED
        except Exception as exc:
            LOGGER.warning("Target generation failed", stage=stage.value, error=str(exc))
            raise

        target = ARTarget(data=data)
        LOGGER.info("Generated .mind target", size=target.byte_size)
        return target


__all__ = ["ARTargetGenerator", "GenerationStage"]
