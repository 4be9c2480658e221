import json
import re
from typing import Any, Dict, Optional


def lower_text(text: Optional[str]) -> str:
    """Purpose: Lower-case free-form text for substring keyword matching.
    Inputs/Outputs: Input is a raw string or None; output is a lower-case string with
        "ё" folded to "е" and whitespace collapsed.
    Side Effects / State: None; pure function.
    Dependencies: Uses regex; called by the intent classifier, selector, and composer.
    Failure Modes: Returns an empty string when input is falsy.
    If Removed: Keyword checks become case-sensitive and miss capitalised requests.
    Testing Notes: "Покажите  ТЕКСТУРУ" should become "покажите текстуру".
    """
    # Fold case and whitespace so keyword stems match anywhere in the message.
    if not text:
        return ""
    lowered = text.lower().replace("ё", "е")
    return re.sub(r"\s+", " ", lowered).strip()


def contains_any(text: str, keywords) -> bool:
    """Return True when any keyword stem occurs in already-lowered text."""
    return any(keyword in text for keyword in keywords)


def parse_decimal(value: Any, strict: bool = False) -> Optional[float]:
    """Purpose: Parse a number written with either a dot or a comma decimal separator.
    Inputs/Outputs: Input is any value; output is a float or None if not numeric. With
        strict=True the whole string must be a number, otherwise a leading number is enough.
    Side Effects / State: None; pure function.
    Dependencies: Uses regex; used by the calculator and price formatting.
    Failure Modes: Returns None for None, empty, or non-numeric input.
    If Removed: Feed params such as "2,13" cannot be used in calculations.
    Testing Notes: "2,13" -> 2.13, "1 250.5" -> 1250.5, "abc" -> None; strict "12abc" -> None.
    """
    # Strip spaces and normalise the decimal separator before parsing.
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = re.sub(r"\s+", "", str(value)).replace(",", ".")
    pattern = r"-?\d+(?:\.\d+)?"
    match = re.fullmatch(pattern, cleaned) if strict else re.match(pattern, cleaned)
    if not match:
        return None
    return float(match.group(0))


def extract_json_block(text: str) -> Optional[str]:
    """Purpose: Extract the first JSON object block from an arbitrary string.
    Inputs/Outputs: Input is a raw string; output is JSON substring or None.
    Side Effects / State: None; pure function.
    Dependencies: None beyond built-ins; used by safe_json_loads.
    Failure Modes: Returns None if braces are missing or inverted.
    If Removed: Model outputs wrapped in prose or code fences cannot be parsed.
    Testing Notes: Provide strings with extra text before/after JSON and ensure extraction.
    """
    # Locate the outermost JSON braces to extract a parseable block.
    if not text:
        return None
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    return text[start : end + 1]


def safe_json_loads(text: str) -> Optional[Dict[str, Any]]:
    """Purpose: Parse a JSON object from a model output string safely.
    Inputs/Outputs: Input is raw text; output is a dict or None if parsing fails.
    Side Effects / State: None; pure function.
    Dependencies: Uses extract_json_block and json.loads; called by GeminiClient.generate_json.
    Failure Modes: Returns None on JSONDecodeError, missing JSON block, or non-object JSON.
    If Removed: JSON-mode responses with stray prefixes crash the schema check.
    Testing Notes: Validate valid JSON parses and malformed JSON returns None.
    """
    # Parse only the extracted JSON block to avoid non-JSON prefixes/suffixes.
    block = extract_json_block(text)
    if not block:
        return None
    try:
        data = json.loads(block)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None
