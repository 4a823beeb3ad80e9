"""
Document Graph Pipeline

Orchestrates the per-document workflow:
1. Load parsed document → 2. Build graph → 3. Link references →
4. Validate reference quality → 5. Save graph and report
"""

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from tqdm import tqdm

from .graph.graph_builder import GraphBuilder
from .graph.knowledge_graph import KnowledgeGraph
from .linkers.embedding_similarity import EmbeddingSimilarity
from .linkers.reference_linker import LinkingResult, ReferenceLinker
from .linkers.reference_resolver import ReferenceResolutionService
from .parsers.parsed_document import ParsedDocument
from .parsers.reference_detector import ReferenceDetector
from .utils.config import Config
from .utils.file_utils import ensure_dir, list_parsed_documents, safe_json_dump, safe_json_load
from .utils.logging_utils import PipelineLogger
from .validation.reference_validator import ReferenceValidationResult, ReferenceValidationService


@dataclass
class DocumentResult:
    """Outcome of processing one document."""
    document_id: str
    success: bool
    graph: Optional[KnowledgeGraph] = None
    linking: Optional[LinkingResult] = None
    validation: Optional[ReferenceValidationResult] = None
    graph_path: Optional[str] = None
    report_path: Optional[str] = None
    error: Optional[str] = None
    processing_time: float = 0.0  # seconds

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_id": self.document_id,
            "success": self.success,
            "graph": self.graph.get_summary() if self.graph else None,
            "linking": self.linking.to_dict() if self.linking else None,
            "validation": self.validation.to_dict() if self.validation else None,
            "graph_path": self.graph_path,
            "report_path": self.report_path,
            "error": self.error,
            "processing_time": self.processing_time,
        }


@dataclass
class PipelineStats:
    """Statistics for pipeline execution."""
    start_time: datetime
    end_time: Optional[datetime] = None
    total_documents: int = 0
    built_graphs: int = 0
    failed_documents: int = 0
    total_nodes: int = 0
    total_edges: int = 0
    references_detected: int = 0
    references_resolved: int = 0
    reference_edges: int = 0
    quality_scores: List[float] = field(default_factory=list)
    quality_warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_seconds": (self.end_time - self.start_time).total_seconds() if self.end_time else None,
            "total_documents": self.total_documents,
            "built_graphs": self.built_graphs,
            "failed_documents": self.failed_documents,
            "build_success_rate": self.built_graphs / max(1, self.total_documents),
            "total_nodes": self.total_nodes,
            "total_edges": self.total_edges,
            "references_detected": self.references_detected,
            "references_resolved": self.references_resolved,
            "reference_edges": self.reference_edges,
            "average_quality_score": (
                sum(self.quality_scores) / len(self.quality_scores) if self.quality_scores else None
            ),
            "quality_warnings": list(self.quality_warnings),
        }


def load_parsed_document(path: Union[str, Path]) -> Tuple[str, ParsedDocument]:
    """
    Read a parsed-document JSON file.

    The document id is the file's ``document_id`` field, else the file stem.
    The parser output may sit at the top level or under a ``parsed`` key.
    """
    path = Path(path)
    data = safe_json_load(path)
    if not isinstance(data, dict):
        raise ValueError(f"{path} is not a parsed-document JSON object")
    document_id = str(data.get("document_id") or path.stem)
    return document_id, ParsedDocument.from_dict(data.get("parsed", data))


class DocumentGraphPipeline:
    """
    Builds, links, validates and saves knowledge graphs for parsed documents.

    Each document gets its own graph, so documents can be processed on
    separate worker threads.
    """

    def __init__(
        self,
        config_path: Optional[str] = "configs/config.yaml",
        config: Optional[Config] = None,
    ):
        """
        Initialize pipeline with configuration.

        Args:
            config_path: Path to configuration file
            config: Already-loaded configuration; takes precedence over ``config_path``
        """
        self.config = config or Config(config_path)

        log_config = self.config.logging
        self.logger = PipelineLogger(
            name="docgraph",
            log_dir=self.config.paths.get("log_dir"),
            level=log_config["level"],
            console=log_config["console"],
        )

        self._init_components()

    def _init_components(self) -> None:
        """Initialize pipeline components."""
        self.builder = GraphBuilder(self.config.builder)
        self.detector = ReferenceDetector(self.config.matcher)

        semantic_matcher = None
        embeddings = self.config.embeddings
        if embeddings.get("enabled"):
            similarity = EmbeddingSimilarity(model_name=embeddings["model"])
            if similarity.available:
                semantic_matcher = similarity
            else:
                self.logger.warning("Embeddings enabled but unavailable; using positional fallback")

        self.resolver = ReferenceResolutionService(self.config.resolver, semantic_matcher)
        self.linker = ReferenceLinker(self.detector, self.resolver)
        self.validator = ReferenceValidationService(self.config.validation)

    # =========================================================================
    # Single document
    # =========================================================================

    def process_document(
        self,
        document_id: str,
        parsed: Union[ParsedDocument, Dict[str, Any]],
        save: bool = True,
    ) -> DocumentResult:
        """
        Build, link, validate and optionally save one document's graph.

        Any failure along the way is reported in the result rather than
        raised, so one bad document does not stop a batch.
        """
        start_time = time.time()
        result = DocumentResult(
            document_id=document_id, success=False, graph=KnowledgeGraph(document_id)
        )

        stage = "build"
        try:
            self.builder.build_graph(document_id, parsed, graph=result.graph)
            stage = "linking"
            result.linking = self.linker.link_graph(result.graph)
            stage = "validation"
            result.validation = self.validator.validate_graph(result.graph)
            if save:
                stage = "save"
                self._save(result)
        except Exception as e:
            self.logger.error(f"Graph {stage} failed for {document_id}: {e}", exc=e)
            result.error = str(e)
        else:
            result.success = True

        result.processing_time = time.time() - start_time
        return result

    def _save(self, result: DocumentResult) -> None:
        paths = self.config.paths
        graph_path = Path(paths["graph_output"]) / f"{result.document_id}.json"
        report_path = Path(paths["report_output"]) / f"{result.document_id}_report.json"

        safe_json_dump(result.graph.serialize(), graph_path)
        safe_json_dump(
            {
                "document_id": result.document_id,
                "graph": result.graph.get_summary(),
                "linking": result.linking.to_dict(),
                "validation": result.validation.to_dict(),
            },
            report_path,
        )
        result.graph_path = str(graph_path)
        result.report_path = str(report_path)

    def _record(self, result: DocumentResult, stats: PipelineStats) -> None:
        """Fold one result into the run metrics (main thread only)."""
        if not result.success:
            self.logger.update_metric("docs_failed")
            stats.failed_documents += 1
            return

        graph = result.graph
        linking = result.linking
        self.logger.update_metric("docs_processed")
        self.logger.update_metric("nodes_created", graph.node_count)
        self.logger.update_metric("edges_created", graph.edge_count)
        self.logger.update_metric("references_detected", linking.references_detected)
        self.logger.update_metric("references_resolved", linking.references_resolved)

        stats.built_graphs += 1
        stats.total_nodes += graph.node_count
        stats.total_edges += graph.edge_count
        stats.references_detected += linking.references_detected
        stats.references_resolved += linking.references_resolved
        stats.reference_edges += len(linking.edges_added)

        score = result.validation.overall_score
        stats.quality_scores.append(score)
        threshold = self.config.validation.min_overall_score
        if score < threshold:
            message = f"{result.document_id}: reference quality {score:.3f} below {threshold}"
            stats.quality_warnings.append(message)
            self.logger.warning(f"Quality warning - {message}")

    # =========================================================================
    # Batches
    # =========================================================================

    def _process_file(self, path: Path, save: bool) -> DocumentResult:
        try:
            document_id, parsed = load_parsed_document(path)
        except Exception as e:
            self.logger.error(f"Failed to load {path}: {e}", exc=e)
            return DocumentResult(document_id=path.stem, success=False, error=str(e))
        return self.process_document(document_id, parsed, save=save)

    def process_files(
        self,
        paths: List[Path],
        max_workers: int = 1,
        save: bool = True,
        stats: Optional[PipelineStats] = None,
    ) -> List[DocumentResult]:
        """
        Process parsed-document files, optionally on a thread pool.

        Args:
            paths: Parsed-document JSON files
            max_workers: Worker threads; 1 processes sequentially
            save: Write graphs and reports to the configured output paths
            stats: Run statistics to update

        Returns:
            One DocumentResult per file, in input order
        """
        stats = stats or PipelineStats(start_time=datetime.now())
        stats.total_documents += len(paths)
        results: Dict[Path, DocumentResult] = {}

        if max_workers <= 1:
            for path in tqdm(paths, desc="Building graphs"):
                results[path] = self._process_file(path, save)
                self._record(results[path], stats)
        else:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                futures = {executor.submit(self._process_file, p, save): p for p in paths}
                for future in tqdm(as_completed(futures), total=len(futures), desc="Building graphs"):
                    path = futures[future]
                    results[path] = future.result()
                    self._record(results[path], stats)

        return [results[p] for p in paths]

    def run(
        self,
        input_path: Optional[Union[str, Path]] = None,
        max_workers: int = 1,
        save: bool = True,
    ) -> PipelineStats:
        """
        Run the full pipeline over a parsed-document file or directory.

        Args:
            input_path: File or directory; defaults to ``paths.parsed_input``
            max_workers: Worker threads
            save: Write graphs, reports and run statistics

        Returns:
            Pipeline execution statistics
        """
        stats = PipelineStats(start_time=datetime.now())
        input_path = Path(input_path or self.config.paths["parsed_input"])

        self.logger.info("=" * 60)
        self.logger.info("Starting Document Graph Pipeline")
        self.logger.info(f"Input: {input_path}")
        self.logger.info("=" * 60)

        try:
            if input_path.is_dir():
                paths = list_parsed_documents(input_path)
            elif input_path.exists():
                paths = [input_path]
            else:
                raise FileNotFoundError(f"Input path {input_path} does not exist")

            if not paths:
                self.logger.warning(f"No parsed documents found in {input_path}")

            self.process_files(paths, max_workers=max_workers, save=save, stats=stats)

            stats.end_time = datetime.now()
            if save:
                report_dir = ensure_dir(self.config.paths["report_output"])
                safe_json_dump(stats.to_dict(), report_dir / "pipeline_stats.json")

            self.logger.log_summary()

        except Exception as e:
            self.logger.error(f"Pipeline failed: {e}", exc=e)
            stats.end_time = datetime.now()
            raise

        return stats


def run_pipeline(
    input_path: Optional[str] = None,
    config_path: str = "configs/config.yaml",
    max_workers: int = 1,
) -> PipelineStats:
    """
    Convenience function to run the pipeline.

    Args:
        input_path: Parsed-document file or directory
        config_path: Path to config file
        max_workers: Worker threads

    Returns:
        Pipeline statistics
    """
    pipeline = DocumentGraphPipeline(config_path)
    return pipeline.run(input_path=input_path, max_workers=max_workers)
