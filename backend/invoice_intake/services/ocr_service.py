"""
Document extractors - the external capability behind the extraction step

Each extractor exposes one coroutine, ``extract(file_path)``, returning the raw
candidate payload as a dict or None when the document yields no data. Field
validation and normalization live in extraction_service, not here.
"""
import asyncio
import base64
import json
import logging
import re
from typing import Dict, Optional

from openai import AsyncOpenAI

from invoice_intake.config import settings
from invoice_intake.services.storage_service import StorageService, storage_service, media_type_for

logger = logging.getLogger(__name__)


EXTRACTION_PROMPT = """Extract all data from this invoice document.

Return a JSON object with this structure:
{
    "invoice_number": "string",
    "vendor_name": "string",
    "vendor_address": "string or null",
    "vendor_email": "string or null",
    "vendor_phone": "string or null",
    "invoice_date": "YYYY-MM-DD",
    "due_date": "YYYY-MM-DD or null",
    "total_amount": number,
    "line_items": [
        {
            "description": "string",
            "quantity": number,
            "unit_price": number,
            "total_price": number
        }
    ]
}

IMPORTANT INSTRUCTIONS:
1. The vendor is the party issuing the invoice, not the "bill to" party
2. Read numbers very carefully - don't confuse decimal and thousands separators
3. Convert dates to YYYY-MM-DD format
4. Use null for missing values, not empty strings

Return ONLY the JSON object, no markdown, no explanation."""


def parse_json_response(content: str) -> Optional[Dict]:
    """Parse a JSON object from model output, tolerating markdown fences"""
    if not content:
        return None

    content = re.sub(r'```json\s*', '', content)
    content = re.sub(r'```\s*', '', content)
    match = re.search(r'\{.*\}', content, re.DOTALL)
    if match:
        content = match.group(0)

    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse JSON from model response: {e}")
        logger.debug(f"Content that failed to parse: {content[:500]}")
        return None
    return parsed if isinstance(parsed, dict) else None


class JsonDocumentExtractor:
    """
    Treats the stored document itself as the candidate payload.

    Stand-in for a real document-understanding service, used in development
    and tests.
    """

    def __init__(self, storage: Optional[StorageService] = None):
        self.storage = storage or storage_service

    async def extract(self, file_path: str) -> Optional[Dict]:
        try:
            content = self.storage.download_file(file_path)
        except FileNotFoundError:
            logger.warning(f"No stored document at {file_path}")
            return None

        try:
            payload = json.loads(content.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.info(f"Document {file_path} is not a JSON payload: {e}")
            return None
        return payload if isinstance(payload, dict) else None


class OpenAIVisionExtractor:
    """Sends the stored document to an OpenAI vision model and reads back JSON"""

    def __init__(self, storage: Optional[StorageService] = None, client: Optional[AsyncOpenAI] = None):
        self.storage = storage or storage_service
        self.model = settings.openai_model
        self.timeout = settings.extraction_timeout_seconds
        self.max_retries = settings.extraction_max_retries

        if client is not None:
            self.client = client
        elif settings.openai_api_key:
            self.client = AsyncOpenAI(api_key=settings.openai_api_key, timeout=self.timeout)
            logger.info(f"Initialized {self.model} for invoice extraction")
        else:
            self.client = None
            logger.warning("OPENAI_API_KEY not set. OpenAI extraction disabled.")

    def _document_part(self, file_content: bytes, file_path: str) -> Dict:
        mime_type = media_type_for(file_path)
        data_url = f"data:{mime_type};base64,{base64.b64encode(file_content).decode('utf-8')}"
        if mime_type == 'application/pdf':
            return {"type": "file", "file": {"filename": file_path.rsplit('/', 1)[-1], "file_data": data_url}}
        return {"type": "image_url", "image_url": {"url": data_url, "detail": "high"}}

    async def extract(self, file_path: str) -> Optional[Dict]:
        if not self.client:
            logger.error("OpenAI extraction requested but no API key is configured")
            return None

        try:
            file_content = self.storage.download_file(file_path)
        except FileNotFoundError:
            logger.warning(f"No stored document at {file_path}")
            return None

        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": EXTRACTION_PROMPT},
                    self._document_part(file_content, file_path),
                ]
            }
        ]

        last_exception = None
        for attempt in range(self.max_retries):
            try:
                logger.info(f"{self.model} extraction attempt {attempt + 1}/{self.max_retries} for {file_path}")
                response = await self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    max_tokens=4096,
                    temperature=0.1,
                )
                if response.choices and response.choices[0].message.content:
                    return parse_json_response(response.choices[0].message.content)
                logger.warning(f"{self.model} returned an empty response for {file_path}")
                return None
            except Exception as e:
                last_exception = e
                logger.warning(f"{self.model} attempt {attempt + 1} failed: {str(e)}")
                if "429" in str(e) or "rate" in str(e).lower():
                    await asyncio.sleep(min(2 ** attempt, 10))

        logger.error(f"OpenAI extraction failed for {file_path}: {last_exception}")
        return None


def get_extractor():
    """Get the document extractor selected by configuration"""
    if settings.extraction_provider == "openai":
        return OpenAIVisionExtractor()
    return JsonDocumentExtractor()
