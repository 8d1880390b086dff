"""Request and response models for the Zenodo deposition API."""

from typing import List, Optional

from pydantic import BaseModel


class Creator(BaseModel):
    name: str
    affiliation: Optional[str] = None
    orcid: Optional[str] = None


class RelatedIdentifier(BaseModel):
    """Cross-reference from one deposition part to another."""
    identifier: str
    relation: str = "continues"
    resource_type: Optional[str] = "dataset"


class DepositionMetadata(BaseModel):
    """Full metadata document; Zenodo replaces the whole document on update."""
    title: str
    upload_type: str = "dataset"
    description: str
    creators: List[Creator]
    keywords: List[str] = []
    related_identifiers: List[RelatedIdentifier] = []

    def to_payload(self) -> dict:
        return {"metadata": self.dict(exclude_none=True)}


class DepositionLinks(BaseModel):
    bucket: Optional[str] = None
    html: Optional[str] = None


class Deposition(BaseModel):
    """Subset of the deposition resource used by the uploader."""
    id: int
    links: DepositionLinks = DepositionLinks()
    state: Optional[str] = None
    submitted: bool = False

    @property
    def bucket_url(self) -> Optional[str]:
        return self.links.bucket

    @property
    def html_url(self) -> Optional[str]:
        return self.links.html


class DepositionFile(BaseModel):
    """A file in a deposition, from the files listing or a bucket upload response.

    The files listing reports ``filesize``; bucket responses report ``size``.
    """
    id: Optional[str] = None
    filename: Optional[str] = None
    key: Optional[str] = None
    filesize: Optional[int] = None
    size: Optional[int] = None

    @property
    def byte_size(self) -> int:
        if self.filesize is not None:
            return self.filesize
        return self.size or 0


class APIErrorBody(BaseModel):
    status: Optional[int] = None
    message: Optional[str] = None
    errors: List[dict] = []

    def describe(self) -> str:
        text = self.message or "Unknown error"
        details = []
        for err in self.errors:
            field = err.get('field')
            messages = err.get('messages') or [err.get('message')]
            details.append(f"{field}: {'; '.join(str(m) for m in messages if m)}" if field
                           else '; '.join(str(m) for m in messages if m))
        if details:
            text += " (" + ", ".join(details) + ")"
        return text
