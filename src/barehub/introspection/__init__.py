"""Introspection layer: read repository trees without a user checkout."""

from typing import Optional

from barehub.config.schema import AppConfig, IntrospectionStrategy
from barehub.core.executor import CommandExecutor, SubprocessExecutor
from barehub.core.paths import PathSanitizer
from barehub.introspection.base import (
    IGNORED_DIRECTORIES,
    IGNORED_FILES,
    TreeIntrospector,
    should_ignore,
)


def create_introspector(
    config: AppConfig,
    sanitizer: Optional[PathSanitizer] = None,
    executor: Optional[CommandExecutor] = None,
) -> TreeIntrospector:
    """Factory function to create the configured tree introspector.

    Args:
        config: Application configuration
        sanitizer: Path resolver (defaults to one over storage.base_directory)
        executor: Command executor for the checkout strategy

    Returns:
        Introspector for ``config.introspection.strategy``

    Raises:
        ValueError: If the strategy is unknown
    """
    sanitizer = sanitizer or PathSanitizer(config.storage.base_directory)
    strategy = config.introspection.strategy

    if strategy == IntrospectionStrategy.OBJECT_GRAPH:
        from barehub.introspection.object_graph import ObjectGraphIntrospector

        return ObjectGraphIntrospector(sanitizer, config.introspection)

    elif strategy == IntrospectionStrategy.CHECKOUT:
        from barehub.introspection.checkout import CheckoutIntrospector

        return CheckoutIntrospector(
            sanitizer,
            worktree_root=config.storage.worktree_root,
            executor=executor or SubprocessExecutor(timeout=config.git.command_timeout),
            config=config.introspection,
            git_binary=config.git.git_binary,
        )

    else:
        raise ValueError(
            f"Unknown introspection strategy: '{strategy}'. "
            f"Supported strategies: object_graph, checkout"
        )


__all__ = [
    "IGNORED_DIRECTORIES",
    "IGNORED_FILES",
    "TreeIntrospector",
    "create_introspector",
    "should_ignore",
]
