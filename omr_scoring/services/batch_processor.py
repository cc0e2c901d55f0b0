"""
Local batch processing of optical reader exports.

Decodes and scores every scanner file in a directory with configurable
parallelism, and can fan the lines of a single large file out across worker
threads. Results always come back in file-name or line order regardless of
completion order.
"""

import asyncio
import glob
import json
import os
import time
import traceback
from typing import List, Optional

from omr_scoring.models.answer_key import AnswerKey
from omr_scoring.models.record import DecodeResult, DecoderConfig, QualityThresholds
from omr_scoring.models.scoring import ScoringConfig
from omr_scoring.models.template import Template
from omr_scoring.services.file_validator import decode_text_content
from omr_scoring.services.quality_classifier import DEFAULT_THRESHOLDS
from omr_scoring.services.record_assembler import (
    build_decode_result,
    decode_line,
    decode_text,
    iter_data_lines,
)
from omr_scoring.services.scoring_engine import score_batch
from omr_scoring.services.segment_decoder import DEFAULT_DECODER_CONFIG

SUMMARY_FILENAME = "_batch_summary.json"


async def decode_text_concurrent(
    text: str,
    template: Template,
    workers: int = 4,
    config: DecoderConfig = DEFAULT_DECODER_CONFIG,
    thresholds: QualityThresholds = DEFAULT_THRESHOLDS,
    skip_header_lines: int = 0,
) -> DecodeResult:
    """
    Decode a scanner export with lines processed on worker threads.

    Args:
        text: File contents, one record per line
        template: Column layout
        workers: Maximum lines decoded at once
        config: Decoder character configuration
        thresholds: Quality tier ratios
        skip_header_lines: Leading lines to ignore

    Returns:
        DecodeResult identical to the sequential decode, ordered by line number
    """
    if workers < 1:
        raise ValueError(f"workers must be at least 1 (got {workers})")

    semaphore = asyncio.Semaphore(workers)

    async def _decode(line_number: int, line: str):
        async with semaphore:
            return await asyncio.to_thread(
                decode_line, line, template, line_number, config, thresholds
            )

    records = await asyncio.gather(*[
        _decode(line_number, line)
        for line_number, line in iter_data_lines(text, skip_header_lines)
    ])
    return build_decode_result(template, records)


async def process_single_file(
    file_path: str,
    template: Template,
    answer_key: Optional[AnswerKey],
    scoring_config: Optional[ScoringConfig],
    idx: int,
    total: int,
    semaphore: asyncio.Semaphore,
    config: DecoderConfig = DEFAULT_DECODER_CONFIG,
    thresholds: QualityThresholds = DEFAULT_THRESHOLDS,
    skip_header_lines: int = 0,
) -> dict:
    """
    Decode (and optionally score) one scanner file and write its JSON result.

    Args:
        file_path: Path to the scanner file
        template: Column layout
        answer_key: Key to score with; decode only when None
        scoring_config: Exam scoring parameters, required with answer_key
        idx: Current file index (for progress display)
        total: Total number of files to process
        semaphore: Bounds how many files are processed at once

    Returns:
        dict: Processing result with status, counts, output file and timing
    """
    basename = os.path.basename(file_path)
    t0 = time.time()
    info = {"file": basename, "status": "ok"}

    try:
        async with semaphore:
            with open(file_path, "rb") as fh:
                text = decode_text_content(fh.read())

            result = await asyncio.to_thread(
                decode_text, text, template, config, thresholds, skip_header_lines
            )
            info["records"] = result.summary.total_lines
            info["rejected"] = result.summary.rejected_count
            info["average_confidence"] = result.summary.average_confidence

            output = {"decode": result.model_dump(mode="json")}
            if answer_key is not None and scoring_config is not None:
                scores = score_batch(result, answer_key, scoring_config)
                info["scored"] = len(scores)
                output["scores"] = [s.model_dump(mode="json") for s in scores]

        stem, _ = os.path.splitext(file_path)
        json_path = f"{stem}.results.json"
        with open(json_path, "w", encoding="utf-8") as f:
            f.write(json.dumps(output, indent=2, ensure_ascii=False))
        info["json"] = os.path.basename(json_path)

    except Exception as e:
        info["status"] = "FAILED"
        info["error"] = str(e)
        traceback.print_exc()

    info["elapsed_s"] = round(time.time() - t0, 1)

    tag = "OK" if info["status"] == "ok" else "FAILED"
    print(
        f"[{idx+1}/{total}] {tag} {basename} -> "
        f"records={info.get('records', '?')} "
        f"rejected={info.get('rejected', '?')} "
        f"scored={info.get('scored', '-')} "
        f"({info['elapsed_s']}s)"
    )

    return info


async def process_directory(
    directory: str,
    template: Template,
    workers: int,
    answer_key: Optional[AnswerKey] = None,
    scoring_config: Optional[ScoringConfig] = None,
    pattern: str = "*.txt",
    config: DecoderConfig = DEFAULT_DECODER_CONFIG,
    thresholds: QualityThresholds = DEFAULT_THRESHOLDS,
    skip_header_lines: int = 0,
) -> List[dict]:
    """
    Process all scanner files in a directory matching the given pattern.

    Args:
        directory: Directory containing scanner exports
        template: Column layout shared by every file
        workers: Number of files processed concurrently (1=sequential)
        answer_key: Key to score with; decode only when None
        scoring_config: Exam scoring parameters
        pattern: Glob pattern for input files (default: "*.txt")

    Returns:
        List[dict]: Processing results for all files, in file name order
    """
    files = sorted(glob.glob(os.path.join(directory, pattern)))
    total = len(files)

    if total == 0:
        print(f"No files found matching pattern: {pattern}")
        return []

    print(f"Found {total} files to process")
    print(f"Concurrency: {workers} workers\n")

    semaphore = asyncio.Semaphore(workers)
    results: List[dict] = []

    def _process(idx: int, path: str):
        return process_single_file(
            path, template, answer_key, scoring_config, idx, total, semaphore,
            config, thresholds, skip_header_lines,
        )

    if workers == 1:
        for idx, path in enumerate(files):
            results.append(await _process(idx, path))
    else:
        gathered = await asyncio.gather(
            *[_process(idx, path) for idx, path in enumerate(files)],
            return_exceptions=True,
        )
        for idx, result in enumerate(gathered):
            if isinstance(result, BaseException):
                result = {
                    "file": os.path.basename(files[idx]),
                    "status": "FAILED",
                    "error": str(result),
                    "elapsed_s": 0,
                }
            results.append(result)

    ok = [r for r in results if r["status"] == "ok"]
    failed = [r for r in results if r["status"] != "ok"]

    print(f"\n{'='*60}")
    print(f"DONE: {len(ok)}/{total} succeeded, {len(failed)} failed")
    print(f"  Records: {sum(r.get('records', 0) for r in ok)}, "
          f"Rejected: {sum(r.get('rejected', 0) for r in ok)}")

    if failed:
        print("\nFailed files:")
        for r in failed:
            print(f"  - {r['file']}: {r.get('error', 'unknown')}")

    summary_path = os.path.join(directory, SUMMARY_FILENAME)
    with open(summary_path, "w", encoding="utf-8") as f:
        json.dump(results, f, indent=2)
    print(f"\nSummary written to {summary_path}")

    return results
