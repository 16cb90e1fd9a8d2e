"""Prompt text and response shape for the mail extraction model."""

import json

SYSTEM_INSTRUCTION = """
You are the Mail Classification Assistant for Nishant Dougall's UK Postbox mailbox.
Your mission: extract data, route each letter to the correct physical location, and prioritize action.

=== DATA EXTRACTION ===
1. UK POSTBOX REFERENCE (ID) is the most important field.
   - Source priority: the 'filename' in the document context, then the document
     header/label ("Ref:", "Item:", or 5-7 digit codes), then barcode text.
   - Format: strictly numeric (e.g. "502391"). Remove spaces from OCR'd IDs.
   - If not found, use "UNKNOWN_REF".

=== ROUTING LOGIC (STRICT) ===
1. ADDRESS OVERRIDE:
   - "Flat 5 Old School Court" or "N17 6LY" -> forward_to_oz
   - "10 Uist Wynd" or "KA7 4GF" or "Ayr" -> forward_to_ayr
2. NAME FALLBACK (only if the address is missing or unclear):
   - Arvind, Ashima, Molly -> forward_to_ayr
   - Nishant -> forward_to_oz
3. DEFAULT: unknown

=== PRIORITY ===
- CRITICAL_FORWARD: PINs, cards, legal documents, ID.
- HIGH_FORWARD: bills, tax, urgent notices.
- ROUTINE_OPTIONAL: statements, general correspondence.
- DIGITAL_ONLY: marketing, junk.

OUTPUT: return strictly JSON following the provided schema. Split multi-page
PDFs into separate letters if you detect different addressees or senders.
"""

RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "analysis_results": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "ukpostbox_ref": {"type": "string"},
                    "drive_file_id": {"type": "string"},
                    "filename": {"type": "string"},
                    "recipient_name": {"type": "string"},
                    "delivery_address": {"type": "string"},
                    "sender": {"type": "string"},
                    "document_type": {"type": "string"},
                    "date_on_document": {"type": "string", "description": "YYYY-MM-DD"},
                    "account_or_reference": {"type": "string"},
                    "routing": {"type": "string", "enum": ["forward_to_ayr", "forward_to_oz", "unknown"]},
                    "importance": {
                        "type": "string",
                        "enum": ["CRITICAL_FORWARD", "HIGH_FORWARD", "ROUTINE_OPTIONAL", "DIGITAL_ONLY"],
                    },
                    "auto_action": {
                        "type": "string",
                        "enum": ["batch_tag_forward", "archive_digital", "human_review_queue"],
                    },
                    "reasoning": {"type": "string"},
                    "confidence": {"type": "string", "enum": ["high", "medium", "low"]},
                },
                "required": [
                    "ukpostbox_ref",
                    "recipient_name",
                    "delivery_address",
                    "sender",
                    "routing",
                    "importance",
                    "auto_action",
                    "reasoning",
                    "filename",
                ],
            },
        }
    },
    "required": ["analysis_results"],
}

# Shown while a call is in flight; purely cosmetic
PROGRESS_PHASES = (
    "Reading document text and layout...",
    "Searching for Sender and UK Postbox ID...",
    "Evaluating routing rules (Ayr vs Australia)...",
    "Checking for deadlines and urgency...",
    "Finalizing classification metadata...",
)


def build_user_prompt(metadata: dict) -> str:
    return (
        f"DOCUMENT CONTEXT: {json.dumps(metadata)}\n"
        "Please analyze this mail piece for Nishant Dougall's mailbox. "
        "Extract all distinct letters if multi-page.\n"
        f"RESPONSE SCHEMA: {json.dumps(RESPONSE_SCHEMA)}"
    )
