"""
Schema registry for inferring and accepting dataset schemas.

Inference produces a candidate only; a reviewer accepts it (optionally
after editing) and the registry stores it as the dataset's schema.
"""

from pathlib import Path
from typing import Sequence
from uuid import UUID

from src.batch.readers.csv_reader import CSVReader
from src.core.models.inferred_schema import InferredSchema
from src.core.models.schema import DatasetSchema
from src.observability.logger import get_logger
from src.warehouse.schema_mgmt import SchemaStore

from .inference import SchemaInferrer

logger = get_logger(__name__)


class SchemaRegistry:
    """
    Registry for dataset schemas.

    Integrates SchemaStore (database operations) with SchemaInferrer
    (schema inference).
    """

    def __init__(self, store: SchemaStore, schema_inferrer: SchemaInferrer | None = None):
        """
        Initialize schema registry.

        Args:
            store: Schema store
            schema_inferrer: Schema inference engine
        """
        self.store = store
        self.inferrer = schema_inferrer or SchemaInferrer()

    def infer(self, headers: Sequence[str], rows: Sequence[Sequence[str]], dataset_name: str) -> InferredSchema:
        return self.inferrer.infer(headers, rows, dataset_name)

    def infer_from_file(self, file_path: str | Path, dataset_name: str) -> InferredSchema:
        """
        Infer a candidate schema from a CSV sample file.

        Raises:
            CSVParseError: If the file cannot be read
        """
        headers, rows = CSVReader(file_path).read()
        return self.infer(headers, rows, dataset_name)

    def accept(
        self,
        candidate: InferredSchema,
        dataset_id: UUID,
        include_observed_bounds: bool = False,
    ) -> DatasetSchema:
        """
        Store a reviewed candidate as the dataset's schema.

        Args:
            candidate: Inferred (and possibly edited) schema
            dataset_id: Target dataset
            include_observed_bounds: Copy observed min/max and lengths into
                field constraints

        Returns:
            The stored DatasetSchema
        """
        schema = candidate.to_schema(dataset_id, include_observed_bounds=include_observed_bounds)
        stored = self.store.save_schema(schema)
        logger.info(
            f"Accepted schema '{stored.name}' for dataset {dataset_id} "
            f"(inference confidence {candidate.confidence:.2f})"
        )
        return stored

    def get_schema(self, dataset_id: UUID) -> DatasetSchema | None:
        return self.store.get_schema(dataset_id)
