#!/usr/bin/env python3
"""
streammark - Streaming incremental markdown renderer

Renders markdown that arrives in arbitrary chunks (for example tokens of an
LLM response) so that every intermediate state is a well-formed, stable
document: settled blocks are never re-rendered, half-written constructs show
placeholders instead of raw syntax, and new text can be revealed with an
animation.

As an aside, this codebase leverages the ChRIS "plugin" concept/pattern as
general purpose python app development framework.

The CLI replays a markdown file as a simulated stream and writes what a UI
would have shown after each chunk.

Usage:
    streammark inputdir/ outputdir/ --inputFile answer.md

Examples:
    # Stream in 8-character chunks
    streammark . output/ --inputFile answer.md --chunkSize 8

    # Use a session profile (animation, custom components, placeholders)
    streammark . output/ --inputFile answer.md --profile chat.yaml -vv
"""

import sys
from pathlib import Path
from argparse import ArgumentParser, Namespace, ArgumentDefaultsHelpFormatter

from chris_plugin import chris_plugin
from .lib import (
    ConfigError, DocumentCompiler, ProfileError, create_session, frame_summarize, load_profile,
    __version__, LOG, state_connectToLogger,
)
from .models import ProgramState, pipeline


DISPLAY_TITLE = r"""
      _                                               _
  ___| |_ _ __ ___  __ _ _ __ ___  _ __ ___   __ _ _ __| | __
 / __| __| '__/ _ \/ _` | '_ ` _ \| '_ ` _ \ / _` | '__| |/ /
 \__ \ |_| | |  __/ (_| | | | | | | | | | | | (_| | |  |   <
 |___/\__|_|  \___|\__,_|_| |_| |_|_| |_| |_|\__,_|_|  |_|\_\

  Streaming incremental markdown renderer
"""

# Define CLI arguments
parser = ArgumentParser(
    description="streammark - replay a markdown file as a stream and record every render",
    formatter_class=ArgumentDefaultsHelpFormatter,
)

parser.add_argument(
    "--inputFile", required=True, type=str, help="Input markdown file (relative to inputdir)"
)

parser.add_argument(
    "--chunkSize", default=16, type=int, help="Characters per simulated stream chunk"
)

parser.add_argument(
    "--profile",
    default=None,
    type=str,
    help="YAML session profile (relative to inputdir)",
)

parser.add_argument(
    "--outputSubdir",
    default=".",
    type=str,
    help="Subdirectory within outputdir for the rendered output",
)

parser.add_argument(
    "-v",
    "--verbosity",
    action="count",
    default=1,
    help="Increase output verbosity (can be repeated: -v, -vv, -vvv)",
)

parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")


def env_check(inputstate: ProgramState) -> ProgramState:
    """
    Validate environment and resolve all file paths.

    Returns:
        ProgramState with added fields:
            - inputSourceFile: Resolved path to the markdown file
            - profileFile: Resolved path to the profile (or None)
            - htmlOutputdir: Created output directory path
            - envOK: True if environment is valid

    Exits:
        1 if the input file or profile is missing, or chunkSize is not positive
    """

    state = inputstate.copy()

    if state.verbosity >= 2:
        LOG(DISPLAY_TITLE, level=2)

    LOG("Checking environment...", level=2)

    input_file = state.inputdir / state.inputFile
    if not input_file.exists():
        print(f"Error: Input file not found: {input_file}", file=sys.stderr)
        state.envOK = False
        sys.exit(1)
    state.inputSourceFile = input_file
    LOG(f"Input file: {input_file}", level=2)

    if state.chunkSize < 1:
        print(f"Error: --chunkSize must be positive, got {state.chunkSize}", file=sys.stderr)
        state.envOK = False
        sys.exit(1)

    if state.profile:
        profile_file = state.inputdir / state.profile
        if not profile_file.exists():
            print(f"Error: Profile not found: {profile_file}", file=sys.stderr)
            state.envOK = False
            sys.exit(1)
        state.profileFile = profile_file
        LOG(f"Profile: {profile_file}", level=2)

    state.htmlOutputdir = state.outputdir / state.outputSubdir
    state.htmlOutputdir.mkdir(parents=True, exist_ok=True)
    LOG(f"Output directory: {state.htmlOutputdir}", level=2)

    state.envOK = True
    return state


def source_stream(inputstate: ProgramState) -> ProgramState:
    """
    Feed the markdown file through a Session chunk by chunk.

    Returns:
        ProgramState with added fields:
            - source: The streamed markdown
            - frames: One frame summary per chunk (plus the finalize step)
            - finalHtml: HTML of the finalized document

    Exits:
        1 if the file cannot be read or the profile is invalid
    """

    state = inputstate.copy()

    LOG("Reading source file...", level=1)
    try:
        state.source = state.inputSourceFile.read_text(encoding="utf-8")
        LOG(f"Read {len(state.source)} characters from {state.inputSourceFile.name}", level=2)
    except Exception as e:
        print(f"Error reading input file: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        if state.profileFile is not None:
            config = load_profile(state.profileFile)
        else:
            config = None
        session = create_session(config)
    except (ProfileError, ConfigError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    LOG(f"Streaming in {state.chunkSize}-character chunks...", level=1)
    session.set_streaming_state(True)
    frames = []
    for index, start in enumerate(range(0, len(state.source), state.chunkSize)):
        chunk = state.source[start:start + state.chunkSize]
        result = session.append(chunk)
        frames.append(frame_summarize(index, chunk, result))

    final = session.set_streaming_state(False)
    frames.append(frame_summarize(len(frames), "", final))
    state.frames = frames
    state.finalHtml = final.html()
    session.close()

    # Session calls rebind the logger; hand it back to the pipeline
    state_connectToLogger(state)
    LOG(f"Streamed {len(frames) - 1} chunks; cache hits {session.cache.hits}, "
        f"renders {session.cache.misses}", level=2)
    return state


def html_compile(inputstate: ProgramState) -> ProgramState:
    """
    Write the finalized page and the per-chunk frames.

    Returns:
        ProgramState with added field:
            - compileResult: Dict containing status, output_file, frames_file, frame_count

    Exits:
        1 if writing fails
    """

    state = inputstate.copy()

    LOG("Compiling output...", level=1)
    try:
        compiler = DocumentCompiler(
            final_html=state.finalHtml,
            frames=state.frames,
            output_dir=str(state.htmlOutputdir),
            title=state.inputSourceFile.stem,
        )
        state.compileResult = compiler.compile()
        LOG(f"Compilation complete: {state.compileResult['frame_count']} frames", level=2)
    except Exception as e:
        print(f"Compilation error: {e}", file=sys.stderr)
        if state.verbosity >= 3:
            import traceback

            traceback.print_exc()
        sys.exit(1)

    return state


def results_report(inputstate: ProgramState) -> ProgramState:
    """
    Display results to the user.

    Returns:
        ProgramState unchanged (terminal pipeline stage)

    Exits:
        1 if compileResult is None
    """
    state: ProgramState = inputstate.copy()
    if not state.compileResult:
        print("Error: Compilation failed", file=sys.stderr)
        sys.exit(1)

    if state.verbosity >= 1:
        LOG("\n✓ Stream rendered!", level=1)
        LOG(f"  Page:   {state.compileResult['output_file']}", level=1)
        LOG(f"  Frames: {state.compileResult['frames_file']} ({state.compileResult['frame_count']})", level=1)
    return state


@chris_plugin(
    parser=parser,
    title="streammark - Streaming incremental markdown renderer",
    category="Utility",
    min_memory_limit="100Mi",
    min_cpu_limit="500m",
)
def main(options: Namespace, inputdir: Path, outputdir: Path):
    """
    Main entry point - replay a markdown file as a stream.

    Orchestrates the pipeline:
        1. env_check: Validate paths and environment
        2. source_stream: Append the file chunk by chunk to a Session
        3. html_compile: Write index.html and frames.jsonl
        4. results_report: Display results to user

    Note:
        This function is wrapped by @chris_plugin which handles CLI
        argument parsing and invokes this function with parsed values.
    """

    state: ProgramState = ProgramState.state_createFromNamespace(
        options=options, inputdir=inputdir, outputdir=outputdir
    )

    # Connect state to logger for entire pipeline
    state_connectToLogger(state)

    pipeline(state, env_check, source_stream, html_compile, results_report)


if __name__ == "__main__":
    main()  # type: ignore  # @chris_plugin decorator transforms signature
