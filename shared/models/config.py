from typing import Literal

from pydantic import BaseModel


class EnvConfig(BaseModel):
    """
    A single environment setting a client needs.

    The full variable name is built by the client from its type and engine,
    e.g. env_key "API_KEY" on the Mistral LLM client reads LLM_MISTRAL_API_KEY.

    Attributes:
        env_key (str): The unprefixed key name.
        val_type (str): How the raw value is parsed ("string", "number", "bool", "list").
        default: Fallback when unset. None marks the setting as required.
    """

    env_key: str
    val_type: Literal["string", "number", "bool", "list"] = "string"
    default: str | int | float | bool | list | None = None
