import os, yaml
from llm_provider import LLMProvider, OllamaProvider, OpenAICompatibleProvider
from settings import settings


def load_provider(config_path: str = None) -> LLMProvider:
    config_path = config_path or settings.LLM_CONFIG_PATH
    cfg = {}
    if os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}

    kind = os.getenv("LLM_PROVIDER", cfg.get("provider", settings.LLM_PROVIDER)).lower()
    if kind == "ollama":
        return OllamaProvider(
            model_id=cfg.get("model_id", "llama3.1:8b-instruct-q4_K_M"),
            url=cfg.get("model_url", "http://localhost:11434"),
            timeout=cfg.get("timeout_seconds"),
        )
    if kind == "openai_compatible":
        return OpenAICompatibleProvider(
            model_id=cfg["model_id"],
            url=cfg["model_url"],
            api_key=os.getenv(cfg.get("api_key_env", "LLM_API_KEY")),
            timeout=cfg.get("timeout_seconds"),
        )
    raise ValueError(f"Unknown provider: {kind}")
