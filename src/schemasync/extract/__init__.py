from schemasync.extract.engine import SchemaExtractionEngine, parse
from schemasync.extract.fields import FieldExtractor, extract_fields
from schemasync.extract.secondary import detect_timestamps, extract_indexes
from schemasync.extract.tokenizer import iter_declarations, split_declarations

__all__ = [
    "FieldExtractor",
    "SchemaExtractionEngine",
    "detect_timestamps",
    "extract_fields",
    "extract_indexes",
    "iter_declarations",
    "parse",
    "split_declarations",
]
