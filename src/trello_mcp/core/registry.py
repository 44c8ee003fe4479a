from __future__ import annotations

import importlib
import inspect
import logging
import pkgutil
from types import ModuleType
from typing import (
    Callable,
    Iterable,
    List,
    Optional,
    Set,
    get_origin,
    get_type_hints,
)

from .client import TrelloClient

log = logging.getLogger("trello_mcp.core.registry")

# Optional per-call overrides added to every registered tool
CREDENTIAL_PARAMS = ("api_key", "token")


# --- Discovery helpers ----------------------------------------------------- #


def discover_tool_modules(
    package_name: str = "trello_mcp.core.tools",
) -> List[ModuleType]:
    """Import all modules under the given tools package, skipping failures."""
    modules: List[ModuleType] = []
    base_pkg = importlib.import_module(package_name)

    for finder in pkgutil.iter_modules(base_pkg.__path__, base_pkg.__name__ + "."):
        name = finder.name
        if name.rsplit(".", 1)[-1].startswith("_"):
            continue
        try:
            module = importlib.import_module(name)
            modules.append(module)
        except Exception as exc:  # pragma: no cover - logged, not fatal
            log.error("Failed importing tool module %s: %s", name, exc)
            continue

    return modules


def iter_tool_functions(module: ModuleType) -> Iterable[Callable]:
    """Yield coroutine functions whose first parameter is `client`."""
    for _, func in inspect.getmembers(module, inspect.iscoroutinefunction):
        if func.__name__.startswith("_"):
            continue
        if func.__module__ != module.__name__:
            # Skip imported functions
            continue

        params = list(inspect.signature(func).parameters.values())
        if not params or params[0].name != "client":
            log.debug(
                "Skipping %s.%s: first parameter must be 'client'",
                module.__name__,
                func.__name__,
            )
            continue

        if any(get_origin(p.annotation) is type for p in params[1:]):
            log.debug(
                "Skipping %s.%s: unsupported parameter annotation (Type[...] detected)",
                module.__name__,
                func.__name__,
            )
            continue

        yield func


# --- Wrapping / registration ---------------------------------------------- #


def _wrap_tool(
    func: Callable, client_provider: Callable[[], TrelloClient]
) -> Callable:
    """
    Return a wrapper that injects the client and hides it from the signature.
    The wrapper also accepts optional `api_key` / `token` which, when given,
    override the provider's credentials for that call only.
    """
    original_sig = inspect.signature(func)
    type_hints = get_type_hints(func)

    new_params = []
    for i, (name, param) in enumerate(original_sig.parameters.items()):
        if i == 0 and name == "client":
            continue  # drop injected client
        ann = type_hints.get(name, param.annotation)
        new_params.append(param.replace(annotation=ann))

    own_names = {p.name for p in new_params}
    for name in CREDENTIAL_PARAMS:
        if name not in own_names:
            new_params.append(
                inspect.Parameter(
                    name,
                    inspect.Parameter.KEYWORD_ONLY,
                    default=None,
                    annotation=Optional[str],
                )
            )

    return_ann = type_hints.get("return", original_sig.return_annotation)
    new_sig = inspect.Signature(parameters=new_params, return_annotation=return_ann)

    async def wrapped(
        *args, api_key: Optional[str] = None, token: Optional[str] = None, **kwargs
    ):
        client = client_provider().with_credentials(api_key=api_key, token=token)
        return await func(client, *args, **kwargs)

    wrapped.__name__ = func.__name__
    wrapped.__doc__ = func.__doc__
    wrapped.__module__ = func.__module__
    wrapped.__signature__ = new_sig  # type: ignore[attr-defined]
    return wrapped


def register_discovered_tools(
    app,
    client_provider: Callable[[], TrelloClient] | TrelloClient,
    modules: List[ModuleType] | None = None,
) -> List[str]:
    """Register discovered tools on an app that exposes a .tool decorator."""
    if isinstance(client_provider, TrelloClient):
        _client = client_provider

        def client_provider():
            return _client

    if not hasattr(app, "tool"):
        raise TypeError("app must expose a 'tool' decorator")

    modules = modules if modules is not None else discover_tool_modules()
    seen_names: Set[str] = set()
    registered: List[str] = []

    for module in modules:
        for func in iter_tool_functions(module):
            name = func.__name__
            if name in seen_names:
                raise ValueError(f"Duplicate tool name detected: {name}")

            wrapped = _wrap_tool(func, client_provider)
            app.tool(name=name)(wrapped)
            seen_names.add(name)
            registered.append(name)
            log.info("Registered tool: %s (%s)", name, module.__name__)

    return registered
