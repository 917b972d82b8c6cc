"""Application context management for the CLI."""

from dataclasses import dataclass

from weavecli.core.adapters.fabriccli import FabricCliAdapter
from weavecli.core.config import AppConfig, load_config
from weavecli.core.executor import CommandExecutor, exit_code_success, strict_success
from weavecli.core.history import HistoryStore


@dataclass
class AppContext:
    """Application context holding config, history, executor and adapter."""

    config: AppConfig
    history: HistoryStore
    executor: CommandExecutor
    adapter: FabricCliAdapter


def build_app_context(
    config_path: str | None = None, history_path: str | None = None
) -> AppContext:
    """Load persisted state and wire the executor and adapter together.

    Args:
        config_path: Optional config file; defaults to the per-user location.
        history_path: Optional history file; defaults to the per-user location.

    Returns:
        AppContext: Context with config, loaded history, executor and adapter.
    """
    config = load_config(config_path)
    history = HistoryStore(history_path)
    history.load()
    executor = CommandExecutor(
        history,
        success=strict_success if config.strict_stderr else exit_code_success,
        max_retries=config.max_retries,
    )
    adapter = FabricCliAdapter(executor, cache_timeout=config.cache_timeout)
    return AppContext(config=config, history=history, executor=executor, adapter=adapter)
