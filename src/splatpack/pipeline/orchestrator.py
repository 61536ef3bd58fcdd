# ABOUTME: Main pipeline orchestrator
# ABOUTME: Runs bounds, Morton reorder, SH clustering, linearize, chunking and assembly with timing

import logging
import time
from pathlib import Path
from typing import List, Optional

from .config import CompressionConfig
from ..assembler import AssetAssembler
from ..asset import GaussianSplatAsset
from ..chunks import quantize_chunks
from ..errors import InputDataError
from ..formats import CHUNK_SIZE
from ..gaussian_splat import GaussianSplat
from ..kmeans import ProgressCallback
from ..linearize import linearize
from ..morton import calc_bounds, reorder_morton
from ..sh_clustering import cluster_sh
from ..utils.logging_utils import ProgressTracker, Timer, TimingStats


class Pipeline:
    """Compresses gaussian splats into a renderer-ready asset."""

    def __init__(self, config: CompressionConfig):
        """Initialize pipeline with configuration."""
        self.config = config
        self.logger = logging.getLogger('splatpack')
        self.timing_stats: List[TimingStats] = []
        self.output_files: List[Path] = []

    def run(self, splats: GaussianSplat,
            progress: Optional[ProgressCallback] = None) -> Optional[GaussianSplatAsset]:
        """
        Execute the complete pipeline.

        Args:
            splats: Stored-domain input splats (not modified)
            progress: Clustering progress callback; returning False cancels.
                Defaults to a logging ProgressTracker.

        Returns:
            The asset, or None if clustering was cancelled (nothing is written)
        """
        start_time = time.time()
        self.timing_stats = []
        self.output_files = []
        cfg = self.config

        if splats.count == 0:
            raise InputDataError("No splats to compress")

        self.logger.info("="*70)
        self.logger.info("SPLAT COMPRESSION PIPELINE")
        self.logger.info("="*70)
        self.logger.info("Splats: %d", splats.count)
        self.logger.info("Quality: %s", cfg.quality.name)
        self.logger.info("Formats: pos %s, scale %s, color %s, sh %s",
                         cfg.pos_format.name, cfg.scale_format.name,
                         cfg.color_format.name, cfg.sh_format.name)
        self.logger.info("Chunked: %s", cfg.uses_chunks)
        if cfg.output_dir:
            self.logger.info("Output: %s", cfg.output_dir)
        self.logger.info("="*70)

        try:
            # 1. Bounds and spatial order
            splats, bounds_min, bounds_max = self._run_reorder(splats)

            # 2. SH codebook (clustered formats only)
            codebook = None
            if cfg.sh_format.is_clustered:
                codebook = self._run_clustering(splats, progress)
                if codebook is None:
                    self.logger.warning("Pipeline cancelled, no asset written")
                    return None

            # 3. Linearize and quantize into chunks
            splats, chunks = self._run_quantize(splats)

            # 4. Encode buffers
            asset = self._run_assemble(splats, bounds_min, bounds_max, chunks, codebook)

            # 5. Save
            if cfg.output_dir:
                self.output_files = asset.save(cfg.output_dir)

            self._print_summary(start_time, asset)
            return asset

        except Exception as e:
            self.logger.error("")
            self.logger.error("PIPELINE FAILED: %s", e)
            raise

    def _stage_header(self, title: str):
        self.logger.info("")
        self.logger.info("-"*70)
        self.logger.info(title)
        self.logger.info("-"*70)

    def _run_reorder(self, splats: GaussianSplat):
        """Compute bounds and Morton reorder."""
        self._stage_header("STAGE 1: BOUNDS AND MORTON REORDER")

        with Timer("Stage 1: Reorder", self.logger) as timer:
            with Timer("Bounds", self.logger) as bounds_timer:
                bounds_min, bounds_max = calc_bounds(splats.positions)
            with Timer("Morton reorder", self.logger) as morton_timer:
                splats, _ = reorder_morton(splats, bounds_min, bounds_max)

        stats = TimingStats("Stage 1: Reorder", timer.elapsed)
        stats.add_substep("Bounds", bounds_timer.elapsed)
        stats.add_substep("Morton reorder", morton_timer.elapsed)
        self.timing_stats.append(stats)

        self.logger.info("Bounds: min %s, max %s", bounds_min.tolist(), bounds_max.tolist())
        return splats, bounds_min, bounds_max

    def _run_clustering(self, splats: GaussianSplat, progress: Optional[ProgressCallback]):
        """Cluster SH coefficients into a codebook."""
        self._stage_header("STAGE 2: SH CLUSTERING")
        cfg = self.config

        with Timer("Stage 2: SH Clustering", self.logger) as timer:
            codebook = cluster_sh(
                splats.sh_coefficients,
                cfg.sh_format,
                batch_size=cfg.cluster_batch_size,
                passes_over_data=cfg.passes_over_data,
                progress=progress or ProgressTracker("SH clustering", logger=self.logger),
                seed=cfg.seed,
                max_workers=cfg.max_workers,
            )

        self.timing_stats.append(TimingStats("Stage 2: SH Clustering", timer.elapsed))
        return codebook

    def _run_quantize(self, splats: GaussianSplat):
        """Linearize attributes and, for lossy formats, normalize per chunk."""
        self._stage_header("STAGE 3: LINEARIZE AND CHUNK")
        cfg = self.config
        chunks = None

        with Timer("Stage 3: Quantize", self.logger) as timer:
            with Timer("Linearize", self.logger) as lin_timer:
                splats = linearize(splats, prewhiten=cfg.uses_chunks,
                                   grain_size=cfg.grain_size, max_workers=cfg.max_workers)
            chunk_elapsed = 0.0
            if cfg.uses_chunks:
                with Timer("Chunk quantization", self.logger) as chunk_timer:
                    chunks, splats = quantize_chunks(splats,
                                                     grain_size=max(1, cfg.grain_size // CHUNK_SIZE),
                                                     max_workers=cfg.max_workers)
                chunk_elapsed = chunk_timer.elapsed

        stats = TimingStats("Stage 3: Quantize", timer.elapsed)
        stats.add_substep("Linearize", lin_timer.elapsed)
        if chunks is not None:
            stats.add_substep("Chunk quantization", chunk_elapsed)
            self.logger.info("Chunks: %d", len(chunks))
        self.timing_stats.append(stats)
        return splats, chunks

    def _run_assemble(self, splats, bounds_min, bounds_max, chunks, codebook) -> GaussianSplatAsset:
        """Encode all buffers and hash them."""
        self._stage_header("STAGE 4: ASSET ASSEMBLY")
        cfg = self.config

        with Timer("Stage 4: Assembly", self.logger) as timer:
            assembler = AssetAssembler(cfg.pos_format, cfg.scale_format, cfg.color_format,
                                       cfg.sh_format, texture_compressor=cfg.texture_compressor)
            asset = assembler.assemble(splats, bounds_min, bounds_max,
                                       chunks=chunks, codebook=codebook, name=cfg.asset_name)

        self.timing_stats.append(TimingStats("Stage 4: Assembly", timer.elapsed))
        self.logger.info("Data hash: %s", asset.data_hash)
        return asset

    def _print_summary(self, start_time: float, asset: GaussianSplatAsset):
        """Print performance summary."""
        total_time = time.time() - start_time

        self.logger.info("")
        self.logger.info("="*70)
        self.logger.info("PIPELINE COMPLETE in %.1fs", total_time)
        self.logger.info("="*70)
        self.logger.info("")

        # Timing breakdown
        if self.timing_stats:
            self.logger.info("TIMING BREAKDOWN:")
            for stat in self.timing_stats:
                self.logger.info(stat.format_tree(total_time))
            self.logger.info("")
            self.logger.info("Total: %.1fs", total_time)
            self.logger.info("")

        self.logger.info("ASSET: %d splats, %.1f MB", asset.splat_count, asset.total_size / 1e6)
        for label, data in (("chunks", asset.chunk_data), ("positions", asset.pos_data),
                            ("other", asset.other_data), ("color", asset.color_data),
                            ("sh", asset.sh_data)):
            if data is not None:
                self.logger.info("  %-10s %10d bytes", label, len(data))

        if self.output_files:
            self.logger.info("")
            self.logger.info("OUTPUT FILES:")
            for f in self.output_files:
                self.logger.info("  %s (%.1f MB)", f.name, f.stat().st_size / 1e6)

        self.logger.info("")
        self.logger.info("="*70)
