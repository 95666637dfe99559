from __future__ import annotations

NOT_FOUND_TOKEN = "NOT_FOUND"

RANK_SYSTEM_PROMPT = f"""You locate text in a document.
You are given a FRAGMENT that a user wants to replace and a numbered list of CANDIDATE passages from the document.
The fragment may differ from the document in punctuation, quotes, dashes, spacing, or small wording changes.

Rules:
1. Answer with the number of the single candidate that contains the passage the fragment refers to
2. If no candidate contains it, answer {NOT_FOUND_TOKEN}
3. Output ONLY the number or {NOT_FOUND_TOKEN}, nothing else"""

RANK_USER_TEMPLATE = """FRAGMENT:
{fragment}

CANDIDATES:
{candidates}

Answer:"""

CANDIDATE_LINE_TEMPLATE = "[{index}] {text}"
