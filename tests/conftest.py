"""
Pytest Configuration and Fixtures

Fake engine objects, in-memory python-pptx documents, and doubles for the
Mongo collections and the S3 client.
"""

import copy
import io
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest
from botocore.exceptions import ClientError
from PIL import Image
from pptx import Presentation
from pptx.chart.data import CategoryChartData
from pptx.dml.color import RGBColor
from pptx.enum.chart import XL_CHART_TYPE
from pptx.enum.shapes import MSO_AUTO_SHAPE_TYPE, MSO_CONNECTOR
from pptx.util import Pt

BLANK_LAYOUT = 6
MP4_BYTES = b"\x00\x00\x00\x18ftypmp42\x00\x00\x00\x00mp42isom" + b"\x00" * 64


# -- fake engine objects ------------------------------------------------------

def _raiser(name: str):
    def getter(self):
        raise RuntimeError(f"{name} accessor failed")
    return property(getter)


def engine_object(raising: tuple = (), **attributes) -> Any:
    """
    Stand-in engine object.

    Attributes named in ``raising`` raise RuntimeError when read; the rest
    return the given values.
    """
    namespace = {name: _raiser(name) for name in raising}
    cls = type("FakeEngineObject", (), namespace)
    obj = cls()
    for name, value in attributes.items():
        setattr(obj, name, value)
    return obj


@pytest.fixture
def make_engine_object():
    return engine_object


# -- python-pptx builders -----------------------------------------------------

def png_bytes(color=(255, 0, 0), size=(8, 8)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, "PNG")
    return buffer.getvalue()


def blank_slide(prs):
    return prs.slides.add_slide(prs.slide_layouts[BLANK_LAYOUT])


def add_column_chart(shapes, left=Pt(300), top=Pt(200), width=Pt(200), height=Pt(150)):
    chart_data = CategoryChartData()
    chart_data.categories = ["Q1", "Q2", "Q3"]
    chart_data.add_series("Revenue", (1.0, 2.5, 4.0))
    return shapes.add_chart(XL_CHART_TYPE.COLUMN_CLUSTERED, left, top, width, height, chart_data)


def build_basic_slide(prs):
    """Text box, filled rectangle, connector, table and a group of two shapes."""
    slide = blank_slide(prs)
    shapes = slide.shapes

    textbox = shapes.add_textbox(Pt(36), Pt(24), Pt(400), Pt(50))
    textbox.name = "Title Box"
    textbox.text_frame.text = "Quarterly results"
    textbox.text_frame.add_paragraph().text = "Second line"

    rectangle = shapes.add_shape(MSO_AUTO_SHAPE_TYPE.RECTANGLE, Pt(36), Pt(100), Pt(120), Pt(80))
    rectangle.name = "Accent"
    rectangle.fill.solid()
    rectangle.fill.fore_color.rgb = RGBColor(0x1F, 0x4E, 0x79)
    rectangle.line.color.rgb = RGBColor(0xFF, 0x00, 0x00)
    rectangle.line.width = Pt(2)
    rectangle.text_frame.text = "Box"

    shapes.add_connector(MSO_CONNECTOR.STRAIGHT, Pt(200), Pt(300), Pt(260), Pt(340))

    table = shapes.add_table(2, 2, Pt(300), Pt(100), Pt(200), Pt(60)).table
    table.cell(0, 0).text = "A"
    table.cell(0, 1).text = "B"
    table.cell(1, 0).text = "1"
    table.cell(1, 1).text = "2"

    group = shapes.add_group_shape()
    group.name = "Pair"
    group.shapes.add_shape(MSO_AUTO_SHAPE_TYPE.OVAL, Pt(500), Pt(300), Pt(40), Pt(40))
    group.shapes.add_textbox(Pt(560), Pt(300), Pt(80), Pt(30)).text_frame.text = "Grouped"
    return slide


@pytest.fixture
def presentation():
    """Fresh default-template presentation."""
    return Presentation()


@pytest.fixture
def basic_presentation():
    prs = Presentation()
    build_basic_slide(prs)
    return prs


@pytest.fixture
def chart_presentation():
    """Three slides, the second holding a text box and a chart."""
    prs = Presentation()
    for index in range(3):
        slide = blank_slide(prs)
        slide.shapes.add_textbox(Pt(20), Pt(20), Pt(200), Pt(40)).text_frame.text = f"Slide {index + 1}"
        if index == 1:
            add_column_chart(slide.shapes).name = "Revenue Chart"
    return prs


@pytest.fixture
def media_presentation():
    """Five pictures on two slides and two embedded videos."""
    prs = Presentation()
    first, second = blank_slide(prs), blank_slide(prs)
    colors = [(255, 0, 0), (0, 255, 0), (0, 0, 255), (255, 255, 0), (0, 255, 255)]
    for index, color in enumerate(colors):
        target = first if index < 3 else second
        target.shapes.add_picture(io.BytesIO(png_bytes(color)), Pt(20 + index * 60), Pt(20), Pt(50), Pt(50))
    first.shapes.add_movie(io.BytesIO(MP4_BYTES), Pt(100), Pt(200), Pt(160), Pt(90), mime_type="video/mp4")
    second.shapes.add_movie(io.BytesIO(MP4_BYTES), Pt(100), Pt(200), Pt(160), Pt(90), mime_type="video/mp4")
    return prs


@pytest.fixture
def pptx_bytes(basic_presentation):
    buffer = io.BytesIO()
    basic_presentation.save(buffer)
    return buffer.getvalue()


# -- Mongo double -------------------------------------------------------------

_MISSING = object()


def _resolve(document: Any, path: str) -> Any:
    current = document
    for part in path.split("."):
        if isinstance(current, list):
            current = [item.get(part, _MISSING) for item in current if isinstance(item, dict)]
            current = [item for item in current if item is not _MISSING]
        elif isinstance(current, dict):
            current = current.get(part, _MISSING)
        else:
            return _MISSING
    return current


def _compare(value: Any, condition: Any) -> bool:
    if isinstance(condition, dict) and condition and all(key.startswith("$") for key in condition):
        for operator, operand in condition.items():
            if value is _MISSING or value is None:
                return False
            if operator == "$gte" and not value >= operand:
                return False
            if operator == "$lte" and not value <= operand:
                return False
            if operator == "$gt" and not value > operand:
                return False
            if operator == "$lt" and not value < operand:
                return False
            if operator == "$in" and value not in operand:
                return False
        return True
    if isinstance(value, list) and not isinstance(condition, list):
        return condition in value
    return value == condition


def matches(document: Dict[str, Any], query: Dict[str, Any]) -> bool:
    return all(_compare(_resolve(document, key), condition) for key, condition in query.items())


def _set_path(document: Dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    for part in parts[:-1]:
        document = document.setdefault(part, {})
    document[parts[-1]] = value


def _get_path(document: Dict[str, Any], path: str, default: Any = None) -> Any:
    value = _resolve(document, path)
    return default if value is _MISSING else value


class FakeCursor:
    def __init__(self, documents: List[Dict[str, Any]]):
        self.documents = documents

    def sort(self, key: str, direction: int = 1):
        self.documents.sort(key=lambda document: document.get(key) or "", reverse=direction < 0)
        return self

    async def to_list(self, length: Optional[int] = None):
        return self.documents if length is None else self.documents[:length]


class FakeCollection:
    """In-memory subset of the motor collection API used by the repository."""

    def __init__(self):
        self.documents: Dict[Any, Dict[str, Any]] = {}
        self.fail_on: set = set()

    def _check(self, operation: str):
        if operation in self.fail_on:
            raise RuntimeError(f"{operation} failed")

    def _first(self, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        for document in self.documents.values():
            if matches(document, query):
                return document
        return None

    async def find_one(self, query: Dict[str, Any]):
        self._check("find_one")
        document = self._first(query)
        return copy.deepcopy(document) if document is not None else None

    def find(self, query: Dict[str, Any]):
        self._check("find")
        return FakeCursor([copy.deepcopy(d) for d in self.documents.values() if matches(d, query)])

    async def replace_one(self, query: Dict[str, Any], document: Dict[str, Any], upsert: bool = False):
        self._check("replace_one")
        existing = self._first(query)
        if existing is None and not upsert:
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)
        stored = copy.deepcopy(document)
        key = existing["_id"] if existing is not None else stored.get("_id", query.get("_id"))
        stored["_id"] = key
        self.documents[key] = stored
        return SimpleNamespace(
            matched_count=int(existing is not None),
            modified_count=int(existing is not None),
            upserted_id=None if existing is not None else key,
        )

    async def update_one(self, query: Dict[str, Any], update: Dict[str, Any], upsert: bool = False):
        self._check("update_one")
        document = self._first(query)
        upserted_id = None
        if document is None:
            if not upsert:
                return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)
            document = {key: value for key, value in query.items() if "." not in key and not isinstance(value, dict)}
            self.documents[document["_id"]] = document
            upserted_id = document["_id"]

        for path, value in update.get("$set", {}).items():
            _set_path(document, path, copy.deepcopy(value))
        for path, amount in update.get("$inc", {}).items():
            _set_path(document, path, _get_path(document, path, 0) + amount)
        for path, value in update.get("$push", {}).items():
            current = _get_path(document, path, None)
            if current is None:
                current = []
                _set_path(document, path, current)
            current.append(copy.deepcopy(value))
        for path, condition in update.get("$pull", {}).items():
            current = _get_path(document, path, [])
            kept = [item for item in current if not (isinstance(condition, dict) and matches(item, condition))]
            _set_path(document, path, kept)

        return SimpleNamespace(
            matched_count=0 if upserted_id is not None else 1,
            modified_count=1,
            upserted_id=upserted_id,
        )

    async def delete_one(self, query: Dict[str, Any]):
        self._check("delete_one")
        document = self._first(query)
        if document is None:
            return SimpleNamespace(deleted_count=0)
        del self.documents[document["_id"]]
        return SimpleNamespace(deleted_count=1)


class FakeMongoService:
    def __init__(self):
        self.collections: Dict[str, FakeCollection] = {}
        self.closed = False

    async def initialize(self):
        return None

    def get_collection(self, collection_name: str, database_name: Optional[str] = None) -> FakeCollection:
        return self.collections.setdefault(collection_name, FakeCollection())

    async def close(self):
        self.closed = True


@pytest.fixture
def mongo_service():
    return FakeMongoService()


# -- S3 double ----------------------------------------------------------------

def client_error(operation: str, code: str = "500") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{operation} rejected"}}, operation)


class FakeS3Client:
    def __init__(self, store: "FakeS3Session"):
        self.store = store

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, traceback):
        return False

    async def head_bucket(self, Bucket):
        return {}

    async def put_object(self, Bucket, Key, Body, ContentType=None, Metadata=None):
        if self.store.fail_uploads:
            raise client_error("PutObject")
        self.store.objects[Key] = {"Body": Body, "ContentType": ContentType, "Metadata": Metadata or {}}
        return {"ETag": '"etag"'}

    async def delete_object(self, Bucket, Key):
        self.store.objects.pop(Key, None)
        return {}

    async def head_object(self, Bucket, Key):
        if Key not in self.store.objects:
            raise client_error("HeadObject", "404")
        return {}

    async def generate_presigned_url(self, operation, Params, ExpiresIn):
        return f"https://signed.example/{Params['Key']}?expires={ExpiresIn}"


class FakeS3Session:
    def __init__(self):
        self.objects: Dict[str, Dict[str, Any]] = {}
        self.fail_uploads = False

    def client(self, service_name: str):
        return FakeS3Client(self)


@pytest.fixture
def s3_session():
    return FakeS3Session()
