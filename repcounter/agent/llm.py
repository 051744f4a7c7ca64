from __future__ import annotations
import os
from typing import Optional
from langchain_openai import ChatOpenAI
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

MODEL = os.getenv("REPCOUNTER_MODEL", "gpt-4o-mini")


def get_llm(model: Optional[str] = None) -> ChatOpenAI:
    # temperature low so the same frame keeps the same label
    return ChatOpenAI(model=model or MODEL, temperature=0)
