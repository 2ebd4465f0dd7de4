"""Prompt text and prompt assembly.

``SYSTEM_PROMPT`` and ``FORMAT_PROMPT`` are sent unchanged with every
request.  ``FORMAT_PROMPT`` describes the JSON object that
``osquery_rag.validation`` accepts, so the two must be edited together.
"""

from __future__ import annotations

from typing import Sequence

SYSTEM_PROMPT = (
    "You are a SQL expert assistant. I have provided context to you, which is a schema "
    "showing available tables (in the 'name' property) and available columns (in the "
    "'columns) property. The 'description' property explains what data is available on "
    "the table. The user is going to ask you a question about their devices, and you are "
    "going to reference only the provided schema to determine which tables and columns "
    "you need to query in order to answer the question. Output only SQL. The user will "
    "run the SQL on their own against a database that matches the schema you have been "
    "provided. Never use columns or tables that are not available in the schema. Always "
    "return SQL. Never return a column or table that does not exist in schema. Do not try "
    "to be helpful, it is more important to be accurate to the schema."
)

FORMAT_PROMPT = """When generating the SQL:
1. Please do not use the SQL "AS" operator, nor alias tables.  Always reference tables by their full name.
2. If this question is related to an application or program, consider using LIKE instead of something verbatim.
3. If this question is not possible to ask given the osquery schema for a particular operating system, then use empty string.
4. If this question is a "yes" or "no" question, then build the query such that a "yes" returns exactly one row and a "no" returns zero rows.  In other words, if this question is about finding out which hosts match a "yes" or "no" question, then if a host does not match, do not include any rows for it.
5. For each table that you use, only use columns that are documented for that table, and use them as documented.
6. Use only tables that are supported for each target platform, as documented in the schema, considering the examples if they exist, and the available columns.
Please give me all of the above in JSON, with this data shape:
{
  "macOSQuery": "SQL HERE",
  "windowsQuery": "SQL HERE",
  "linuxQuery": "SQL HERE",
  "chromeOSQuery": "SQL HERE"
}
The text 'SQL HERE' is where you will put the SQL necessary to query that type of operating system in osquery. If the data is not available in the schema, leave the property empty.
In the resulting JSON report:
1. Never use newline characters within double quotes, and ensure the result is valid JSON.
2. Please do not add any text outside of the JSON report, nor wrap it in a code fence.
3. Ensure your response is valid JSON."""

CONTEXT_HEADER = "Context information is below."
CONTEXT_RULE = "---------------------"
CONTEXT_FOOTER = (
    "Given the context information and not prior knowledge, follow the instructions "
    "below."
)


def _truncate_chars(s: str, max_chars: int) -> str:
    if len(s) <= max_chars:
        return s
    return s[:max_chars] + "..."


def compose(system_prompt: str, format_prompt: str, user_question: str) -> str:
    """Join the labelled system, format and question segments."""
    return (
        "System instructions: " + system_prompt + "\n\n"
        + "Format instructions: " + format_prompt + "\n\n"
        + "User question: \n\n" + user_question
    )


def build_grounded_prompt(
    composed: str, contexts: Sequence[str], max_context_chars: int = 12000
) -> str:
    """Prefix ``composed`` with the retrieved context block.

    The context comes first so the user question stays the trailing
    segment of the prompt.
    """
    context = _truncate_chars("\n\n".join(contexts), max_context_chars)
    return (
        f"{CONTEXT_HEADER}\n{CONTEXT_RULE}\n{context}\n{CONTEXT_RULE}\n"
        f"{CONTEXT_FOOTER}\n\n{composed}"
    )
