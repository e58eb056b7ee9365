import importlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from runtime.agent_runtime import DEFAULT_AGENT_INSTRUCTIONS, AgentContext, AgentFactory, AgentProviders, HttpAgentClient

AGENT_TYPES = ("http", "factory")


@dataclass
class AgentSpec:
    """Parsed agent profile schema used by runtime services."""

    name: str
    type: str
    instructions_template: str
    endpoint: Optional[str] = None
    factory: Optional[str] = None
    providers: Dict[str, str] = field(default_factory=dict)
    options: Dict[str, Any] = field(default_factory=dict)
    request_timeout_s: float = 1800.0


class AgentSpecLoader:
    """Loader for agent YAML profiles and their instruction templates."""

    def __init__(self, base_dir: Path) -> None:
        """Keep repository base path for prompt-file resolution."""

        self.base_dir = base_dir

    def load(self, path: Path) -> AgentSpec:
        """Load an agent profile and validate its execution target."""

        if not path.exists():
            raise FileNotFoundError(f"Agent profile not found: {path}")
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Invalid agent profile shape in {path}: expected object at root")

        agent_type = data.get("type", "http")
        if agent_type not in AGENT_TYPES:
            raise ValueError(f"Unsupported agent type '{agent_type}'. Use one of: {', '.join(AGENT_TYPES)}.")
        if agent_type == "http" and not data.get("endpoint"):
            raise ValueError("Agent profile of type 'http' requires `endpoint`")
        if agent_type == "factory" and not data.get("factory"):
            raise ValueError("Agent profile of type 'factory' requires `factory` (module:callable)")

        providers = data.get("providers") or {}
        if not isinstance(providers, dict) or not all(isinstance(v, str) for v in providers.values()):
            raise ValueError("`providers` must map model names to provider names")

        return AgentSpec(
            name=data["name"],
            type=agent_type,
            instructions_template=self._resolve_prompt_template(data, path),
            endpoint=data.get("endpoint"),
            factory=data.get("factory"),
            providers={str(k): v for k, v in providers.items()},
            options=data.get("options") or {},
            request_timeout_s=float(data.get("request_timeout_s", 1800.0)),
        )

    def _resolve_prompt_template(self, data: Dict[str, Any], agent_path: Path) -> str:
        """Resolve instructions from inline template, external prompt file, or the default."""

        prompt_template = data.get("prompt_template")
        prompt_file = data.get("prompt_file")

        if prompt_template is not None and prompt_file is not None:
            raise ValueError("Agent spec must define only one of `prompt_template` or `prompt_file`")

        if prompt_file is not None:
            if not isinstance(prompt_file, str) or not prompt_file.strip():
                raise ValueError("`prompt_file` must be a non-empty string path")
            prompt_path = self._resolve_prompt_path(prompt_file.strip(), agent_path)
            if not prompt_path.exists():
                raise FileNotFoundError(f"Prompt file not found: {prompt_path}")
            return prompt_path.read_text(encoding="utf-8")

        if prompt_template is None:
            return DEFAULT_AGENT_INSTRUCTIONS
        if not isinstance(prompt_template, str):
            raise ValueError("`prompt_template` must be a string")
        return prompt_template

    def _resolve_prompt_path(self, prompt_file: str, agent_path: Path) -> Path:
        """Resolve prompt-file path relative to agent file first, then repo base."""

        raw = Path(prompt_file)
        if raw.is_absolute():
            return raw

        candidate_agent_dir = agent_path.parent / raw
        if candidate_agent_dir.exists():
            return candidate_agent_dir
        return self.base_dir / raw


def import_factory(path: str) -> Any:
    """Resolve a `module:attr` (or dotted `module.attr`) reference."""

    module_name, sep, attr = path.partition(":")
    if not sep:
        module_name, _, attr = path.rpartition(".")
    if not module_name or not attr:
        raise ValueError(f"Invalid factory path '{path}'")
    module = importlib.import_module(module_name)
    try:
        return getattr(module, attr)
    except AttributeError as exc:
        raise AttributeError(f"Module '{module_name}' has no attribute '{attr}'") from exc


def build_agent_factory(spec: AgentSpec) -> AgentFactory:
    """Return the callable that binds an agent to each task's session."""

    if spec.type == "factory":
        factory = import_factory(spec.factory or "")
        if not callable(factory):
            raise ValueError(f"Agent factory '{spec.factory}' is not callable")
        return factory

    endpoint = spec.endpoint or ""

    def _http_agent(context: AgentContext) -> HttpAgentClient:
        return HttpAgentClient(endpoint, context, request_timeout_s=spec.request_timeout_s)

    return _http_agent


def build_providers(spec: AgentSpec) -> AgentProviders:
    """Built-in model/provider table extended by the profile's `providers` map."""

    return AgentProviders(spec.providers)
