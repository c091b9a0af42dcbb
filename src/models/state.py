"""
Program state model and pipeline helper

Defines the ProgramState dataclass carried through the CLI's functional
pipeline and the pipeline() helper that composes the stages.
"""

from pathlib import Path
from argparse import Namespace
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar
from dataclasses import dataclass, field
from functools import reduce


PS = TypeVar("PS", bound="ProgramState")


@dataclass
class ProgramState:
    """
    Central state container for the streaming simulation pipeline.

    Each stage copies the state and adds its own fields.

    Pipeline stages and their state additions:
        - Initial: inputdir, outputdir, verbosity, inputFile, chunkSize, profile
        - env_check: inputSourceFile, profileFile, htmlOutputdir, envOK
        - source_stream: source, frames, finalHtml
        - html_compile: compileResult
        - results_report: (no additions, terminal stage)

    Attributes:
        inputdir: Directory containing the markdown source
        outputdir: Directory for the rendered output
        verbosity: Logging verbosity level (0-3)
        inputFile: Markdown filename (relative to inputdir)
        chunkSize: Characters per simulated stream chunk
        profile: Optional YAML session profile (relative to inputdir)
        outputSubdir: Subdirectory within outputdir for output
        envOK: Environment validation passed
        inputSourceFile: Resolved path to the markdown file
        profileFile: Resolved path to the profile, if any
        htmlOutputdir: Final output directory (outputdir + outputSubdir)
        source: Markdown text that was streamed
        frames: One summary dict per appended chunk
        finalHtml: HTML of the finalized document
        compileResult: Written files and statistics
    """

    # CLI arguments
    inputdir: Optional[Path] = field(default=None)
    outputdir: Optional[Path] = field(default=None)
    verbosity: int = field(default=1)
    inputFile: str = field(default="")
    chunkSize: int = field(default=16)
    profile: Optional[str] = field(default=None)
    outputSubdir: str = field(default=".")

    # Pipeline state
    envOK: bool = field(default=False)
    inputSourceFile: Path = field(default=Path("/"))
    profileFile: Optional[Path] = field(default=None)
    htmlOutputdir: Path = field(default=Path("/"))
    source: str = field(default="")
    frames: List[Dict[str, Any]] = field(default_factory=list)
    finalHtml: str = field(default="")
    compileResult: Optional[Dict] = field(default=None)

    @classmethod
    def state_createFromNamespace(
        cls: Type["ProgramState"], options: Namespace, inputdir: Path, outputdir: Path
    ) -> "ProgramState":
        """
        Create ProgramState from argparse Namespace and directory paths.

        Args:
            options: Parsed CLI arguments (inputFile, chunkSize, profile, ...)
            inputdir: Directory containing source files
            outputdir: Directory for output

        Returns:
            ProgramState instance with all CLI options as attributes
        """
        import dataclasses
        valid_fields = {f.name for f in dataclasses.fields(cls)}

        # Only keep options that are ProgramState fields
        filtered_options = {k: v for k, v in vars(options).items() if k in valid_fields}

        merged_args = {**filtered_options, "inputdir": inputdir, "outputdir": outputdir}
        return cls(**merged_args)

    def copy(self: PS) -> PS:
        """
        Creates a shallow copy of the ProgramState instance.

        Returns:
            A new ProgramState instance.
        """
        return type(self)(**self.__dict__)


def pipeline(
    initial_state: ProgramState, *stages: Callable[[ProgramState], ProgramState]
) -> ProgramState:
    """
    Execute a functional pipeline of state transformations.

    Each stage is a function (ProgramState) -> ProgramState that receives
    the output of the previous stage and returns a new state.

    Example:
        final_state = pipeline(
            initial_state,
            env_check,
            source_stream,
            html_compile,
            results_report
        )

    This is equivalent to:
        results_report(html_compile(source_stream(env_check(initial_state))))
    """
    return reduce(lambda state, stage: stage(state), stages, initial_state)
