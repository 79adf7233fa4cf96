import io
import logging
import zipfile
from typing import Any, Dict
from xml.etree import ElementTree

from twin_api.services.storage import StorageService

logger = logging.getLogger(__name__)

MAX_DOCUMENT_BYTES = 5 * 1024 * 1024
WORD_NS = '{http://schemas.openxmlformats.org/wordprocessingml/2006/main}'

class DocumentService:
    """Turns an uploaded document into a digital twin record"""

    def __init__(self, storage_service: StorageService):
        self.storage = storage_service

    def extract_text(self, filename: str, data: bytes) -> str:
        if (filename or '').lower().endswith('.docx'):
            return self._extract_docx(data)
        return data.decode('utf-8', errors='replace').strip()

    def _extract_docx(self, data: bytes) -> str:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            document = ElementTree.fromstring(archive.read('word/document.xml'))

        paragraphs = []
        for paragraph in document.iter(f'{WORD_NS}p'):
            text = ''.join(node.text or '' for node in paragraph.iter(f'{WORD_NS}t'))
            if text:
                paragraphs.append(text)
        logger.info(f"Extracted {len(paragraphs)} paragraphs from Word document")
        return '\n'.join(paragraphs)

    def create_digital_twin(self, content: str, name: str) -> Dict[str, Any]:
        summary = content[:200]
        return self.storage.create_digital_twin({
            'name': name,
            'description': summary,
            'type': 'Document Twin',
            'status': 'active',
            'metadata': {'source': 'document', 'content_length': len(content)}
        })
