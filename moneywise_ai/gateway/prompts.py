"""
Prompt Builder

Composes request payloads for the four operation kinds:

| Operation  | Instructions                         | Response format |
|------------|--------------------------------------|-----------------|
| extraction | strict deterministic parser          | JSON            |
| analysis   | empathetic analyst, dataset-bound    | text            |
| insight    | analyst returning {summary, insights}| JSON            |
| chat       | passthrough                          | text            |

The model is a TRANSLATOR, not an ORACLE: analysis and insight prompts
are explicitly restricted to the data we send.
"""

from datetime import datetime, timezone

from moneywise_ai.models.gemini import RequestPayload, ResponseFormat


def _iso(now: datetime) -> str:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.isoformat(timespec="seconds")


class PromptBuilder:
    """Builds RequestPayloads. Stateless; one instance can be shared."""

    def extraction(self, text: str, now: datetime) -> RequestPayload:
        """
        Payload for turning free text into one transaction object.

        Relative dates ("yesterday") are resolved against `now`.
        """
        prompt = f"""You are a STRICT, deterministic expense parser.

GOAL
Return a SINGLE JSON object representing the transaction described in the user input.

CURRENT CONTEXT
- NOW_ISO: "{_iso(now)}"

OUTPUT FORMAT (JSON Object)
{{
  "amount": number,          // Positive number, no currency symbols
  "type": string,            // "expense" or "income" (default to "expense" if ambiguous)
  "category": string,        // Infer category (e.g., "Food", "Transport", "Shopping", "Salary") or "Uncategorized"
  "account": string,         // Infer account (e.g., "Cash", "Credit Card", "Bank") or "Cash"
  "paymentMethod": string,   // Infer method or same as account
  "note": string,            // Brief description of the item/service
  "confidence": number,      // 0.0 to 1.0
  "date": string             // ISO 8601 "YYYY-MM-DD"
}}

RULES
1. Work ONLY with the input text. Do not hallucinate.
2. Amount: Normalize to number (e.g., "RM12.50" -> 12.5, "1k" -> 1000).
3. Date: Resolve relative dates ("yesterday", "today") relative to NOW_ISO. Default to NOW_ISO date if unspecified.
4. Type: Detect "income", "salary", "received" as "income". Otherwise "expense".
5. Category: Infer based on keywords (e.g., "latte" -> "Food", "taxi" -> "Transport").
6. Output MUST be raw JSON only. No markdown, no code blocks.

User Input: "{text}"
"""
        return RequestPayload.from_text(prompt, ResponseFormat.JSON)

    def analysis(self, question: str, dataset: str) -> RequestPayload:
        """Payload for a free-text answer grounded in `dataset`."""
        prompt = f"""You are a friendly, empathetic financial assistant.

GOAL
Provide specific analysis and actionable suggestions based strictly on the provided transaction data.

DATA CONTEXT
{dataset}

USER QUESTION
"{question}"

RULES
1. Tone: Empathetic, encouraging, non-judgmental. Avoid lecturing.
2. Specificity: Cite specific numbers or trends from the data to support your points.
3. Relevance: Answer the user's question directly.
4. Length: Keep it concise (max 3 paragraphs).
5. Format: Plain text, natural language.
6. Use ONLY the data above. If it does not answer the question, say so."""
        return RequestPayload.from_text(prompt, ResponseFormat.TEXT)

    def insight(self, period: str, dataset: str) -> RequestPayload:
        """Payload asking for {summary, insights[]} about `period`."""
        prompt = f"""You are a financial analyst.

GOAL
Analyze the transaction data for {period} and return a JSON object containing a summary and actionable insights.

DATA CONTEXT
{dataset}

OUTPUT FORMAT (JSON Object)
{{
  "summary": string,   // Brief summary of spending behavior (max 2 sentences).
  "insights": [string] // Array of 2-3 short, specific insights or suggestions (e.g., "Dining out increased by 20%", "Subscription costs are high").
}}

RULES
1. Work ONLY with the provided data.
2. Insights must be specific and actionable.
3. Output MUST be raw JSON only. No markdown, no code blocks."""
        return RequestPayload.from_text(prompt, ResponseFormat.JSON)

    def chat(self, message: str) -> RequestPayload:
        """Passthrough payload; `message` already carries the history."""
        return RequestPayload.from_text(message, ResponseFormat.TEXT)
