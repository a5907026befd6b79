"""End-to-end pipeline: settings in, rendered prompt and token report out."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

from codexio.config import GitContext, PatternSet, PromptModel, PromptResult, RenderOptions
from codexio.exceptions import GitError, InvalidRootError
from codexio.file_manipulation import ContentAggregator, TreeWalker
from codexio.git import GitContextProvider
from codexio.logging import logger
from codexio.output_construction import TemplateRenderer
from codexio.patterns import IgnoreRules, PathMatcher
from codexio.tokens import TokenCounter
from codexio.tree import build_tree

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from codexio.settings import Settings


def label(path: Path) -> str:
    """Return the display name of the root directory."""
    return path.name or str(path)


def collect_git_context(root: Path, settings: Settings) -> tuple[GitContext | None, tuple[str, ...]]:
    """Fetch the git sections requested by ``settings``.

    Failures degrade to empty sections and are returned as messages, unless
    ``settings.require_git`` is set, in which case they propagate.

    Args:
        root (Path): directory inside the repository
        settings (Settings): run settings

    Returns:
        tuple[GitContext | None, tuple[str, ...]]: the context (None when nothing
            was requested) and the error messages of the failed sections
    """
    if not (settings.diff or settings.git_diff_branch or settings.git_log_branch):
        return None, ()

    provider = GitContextProvider(root)
    errors: list[str] = []

    def fetch(section: str, func: Callable[..., str], *args: str) -> str:
        try:
            return func(*args)
        except GitError as e:
            if settings.require_git:
                raise
            logger.warning("git_context_unavailable", section=section, error=str(e))
            errors.append(f"{section}: {e}")
            return ""

    diff = fetch("diff", provider.working_tree_diff) if settings.diff else ""
    diff_branch = fetch("git_diff_branch", provider.diff, *settings.git_diff_branch) if settings.git_diff_branch else ""
    log_branch = fetch("git_log_branch", provider.log, *settings.git_log_branch) if settings.git_log_branch else ""
    return GitContext(diff=diff, diff_branch=diff_branch, log_branch=log_branch), tuple(errors)


def build_prompt(settings: Settings) -> PromptResult:
    """Run the whole pipeline for one root directory.

    Configuration problems (root, encoding, patterns, template) are raised
    before the walk starts. Per-file problems end up in ``warnings``; git
    problems in ``git_errors``.

    Args:
        settings (Settings): run settings

    Returns:
        PromptResult: the rendered prompt with its model, token report and warnings
    """
    root = settings.root.expanduser().resolve()
    if not root.is_dir():
        raise InvalidRootError(root=root)

    counter = TokenCounter(settings.encoding)
    renderer = TemplateRenderer.from_path(settings.template)
    renderer.check_variables(settings.variables)
    matcher = PathMatcher(
        PatternSet(
            include=tuple(settings.include),
            exclude=tuple(settings.exclude),
            include_priority=settings.include_priority,
        ),
        IgnoreRules(hidden=settings.hidden, use_ignore_files=settings.use_ignore_files),
    )

    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="codexio-git") as git_pool:
        git_future = git_pool.submit(collect_git_context, root, settings)

        walker = TreeWalker(root, matcher)
        entries = list(walker.walk())
        logger.info("walk_finished", root=str(root), files=len(entries), warnings=len(walker.warnings))

        source_tree = build_tree(label(root), entries)
        aggregator = ContentAggregator(
            RenderOptions(
                line_numbers=settings.line_numbers,
                codeblock=not settings.no_codeblock,
                absolute_paths=settings.absolute_paths,
            ),
            workers=settings.workers,
        )
        files = aggregator.aggregate_all(entries)
        git, git_errors = git_future.result()

    model = PromptModel(
        root_path=label(root),
        source_tree=source_tree,
        files=tuple(files),
        git=git,
        variables=settings.variables,
    )
    prompt = renderer.render(model)
    report = counter.report(prompt) if settings.tokens or settings.json_output else None
    return PromptResult(
        prompt=prompt,
        model=model,
        token_report=report,
        warnings=(*walker.warnings, *aggregator.warnings),
        git_errors=git_errors,
    )
