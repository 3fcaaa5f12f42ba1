import sys
from collections import OrderedDict
from typing import Dict, List, Optional

from fastapi import FastAPI, File, Form, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from srcsetify import config
from srcsetify.archive import pack
from srcsetify.batch import Batch, SourceUpload, process_batch
from srcsetify.errors import ArchiveError, EmptySelection, InvalidSource
from srcsetify.image_ops import mime_type, resolve_format
from srcsetify.models import (
    BatchOut,
    MarkupOut,
    PresetOut,
    PresetsOut,
    SelectionOut,
    batch_out,
    markup_out,
)
from srcsetify.naming import suffix_for, variant_filenames
from srcsetify.presets import DEFAULT_PRESETS, parse_labels

# --- Environment & Config ---
print(
    f"[startup] workers={config.MAX_WORKERS} strict_format={config.STRICT_FORMAT} "
    f"default_directory={config.DEFAULT_DIRECTORY!r}"
)

# Batches live in memory only, least recently used first; nothing is persisted.
BATCHES: "OrderedDict[str, Batch]" = OrderedDict()

# --- App Init ---
app = FastAPI(title="SrcSetify")
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)


def _get_batch(batch_id: str) -> Batch:
    batch = BATCHES.get(batch_id)
    if batch is None:
        raise HTTPException(status_code=404, detail=f"Batch {batch_id} not found.")
    BATCHES.move_to_end(batch_id)
    return batch


def _store_batch(batch: Batch) -> None:
    BATCHES[batch.id] = batch
    while len(BATCHES) > config.MAX_BATCHES:
        evicted_id, _ = BATCHES.popitem(last=False)
        print(f"[process] evicted batch {evicted_id}")


def _selection(batch: Batch, result_id: str) -> SelectionOut:
    try:
        selected = batch.selection.active(result_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Result {result_id} not found.")
    return SelectionOut(result_id=result_id, selected=sorted(selected))


def _attachment(filename: str) -> Dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


# --- Meta Endpoints ---
@app.get("/health")
async def health():
    return {"status": "ok", "batches": len(BATCHES)}


@app.get("/presets", response_model=PresetsOut)
async def list_presets():
    return PresetsOut(
        presets=[PresetOut(label=p.label, width=p.width, suffix=suffix_for(p.label)) for p in DEFAULT_PRESETS],
        default_widths=list(DEFAULT_PRESETS.default_widths),
    )


# --- Processing ---
@app.post("/process", response_model=BatchOut)
async def process_endpoint(
    images: Optional[List[UploadFile]] = File(None),
    image: Optional[UploadFile] = File(None),
    format: str = Form("jpg"),
    selectedSizes: Optional[str] = Form(None),
    directory: Optional[str] = Form(None),
):
    """Render responsive variants for one or more uploaded images.

    Files may be sent as repeated ``images`` fields or a single ``image``
    field. ``format`` is one of ``jpg``, ``webp`` or ``png``; unknown values
    fall back to ``jpg`` unless ``SRCSETIFY_STRICT_FORMAT`` is set.
    ``selectedSizes`` is an optional comma separated list of preset labels.
    Images that fail are reported under ``errors`` while the rest succeed.
    """
    uploads = list(images or [])
    if image is not None:
        uploads.append(image)
    if not uploads:
        raise HTTPException(status_code=400, detail="No file provided")
    try:
        resolve_format(format)
    except InvalidSource as e:
        raise HTTPException(status_code=400, detail=e.message)

    sources = []
    for upload in uploads:
        data = await upload.read()
        if len(data) > config.MAX_UPLOAD_BYTES:
            raise HTTPException(
                status_code=413,
                detail=f"{upload.filename} exceeds the {config.MAX_UPLOAD_BYTES} byte upload limit.",
            )
        sources.append(SourceUpload(upload.filename or "image", data))

    outcomes = await process_batch(sources, format, parse_labels(selectedSizes))
    batch = Batch(outcomes)
    _store_batch(batch)
    print(f"[process] batch {batch.id}: {len(batch.results)} ok, {len(batch.errors)} failed")
    return batch_out(batch, directory)


@app.get("/batches/{batch_id}", response_model=BatchOut)
async def get_batch(batch_id: str, directory: Optional[str] = None):
    return batch_out(_get_batch(batch_id), directory)


@app.delete("/batches/{batch_id}")
async def delete_batch(batch_id: str):
    _get_batch(batch_id)
    del BATCHES[batch_id]
    return {"deleted": batch_id}


@app.delete("/batches/{batch_id}/results/{result_id}")
async def delete_result(batch_id: str, result_id: str):
    batch = _get_batch(batch_id)
    try:
        batch.remove(result_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Result {result_id} not found.")
    return {"deleted": result_id}


# --- Markup & Downloads ---
@app.get("/batches/{batch_id}/results/{result_id}/markup", response_model=MarkupOut)
async def get_markup(batch_id: str, result_id: str, directory: Optional[str] = None):
    """Regenerate the srcset for a result under another base directory."""
    batch = _get_batch(batch_id)
    try:
        result = batch.result(result_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Result {result_id} not found.")
    return markup_out(result, directory)


@app.get("/batches/{batch_id}/results/{result_id}/variants/{index}")
async def download_variant(batch_id: str, result_id: str, index: int):
    batch = _get_batch(batch_id)
    try:
        result = batch.result(result_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Result {result_id} not found.")
    if not 0 <= index < len(result.variants):
        raise HTTPException(status_code=404, detail=f"Variant {index} not found.")
    filename = variant_filenames(result.original_name, result.variants, result.format)[index]
    return Response(
        content=result.variants[index].data,
        media_type=mime_type(result.format),
        headers=_attachment(filename),
    )


# --- Selection ---
@app.post("/batches/{batch_id}/results/{result_id}/selection/{index}/toggle", response_model=SelectionOut)
async def toggle_selection(batch_id: str, result_id: str, index: int):
    batch = _get_batch(batch_id)
    try:
        batch.toggle(result_id, index)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Result {result_id} not found.")
    except IndexError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _selection(batch, result_id)


@app.post("/batches/{batch_id}/results/{result_id}/selection/all", response_model=SelectionOut)
async def select_all(batch_id: str, result_id: str):
    batch = _get_batch(batch_id)
    try:
        batch.select_all(result_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Result {result_id} not found.")
    return _selection(batch, result_id)


@app.delete("/batches/{batch_id}/results/{result_id}/selection", response_model=SelectionOut)
async def deselect_all(batch_id: str, result_id: str):
    batch = _get_batch(batch_id)
    try:
        batch.deselect_all(result_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Result {result_id} not found.")
    return _selection(batch, result_id)


@app.post("/batches/{batch_id}/selection/all", response_model=List[SelectionOut])
async def select_all_across(batch_id: str):
    batch = _get_batch(batch_id)
    batch.select_all_across()
    return [_selection(batch, r.id) for r in batch.results]


@app.delete("/batches/{batch_id}/selection", response_model=List[SelectionOut])
async def deselect_all_across(batch_id: str):
    batch = _get_batch(batch_id)
    batch.deselect_all_across()
    return [_selection(batch, r.id) for r in batch.results]


# --- Export ---
@app.get("/batches/{batch_id}/archive")
async def download_archive(
    batch_id: str,
    scope: str = Query("selected"),
    result_id: Optional[str] = None,
):
    """Zip the batch's variants.

    ``scope=selected`` (default) exports only active variants and
    ``scope=batch`` every variant. ``result_id`` restricts the export to one
    image. Nothing selected yields a 409.
    """
    if scope not in ("selected", "batch"):
        raise HTTPException(status_code=400, detail="scope must be 'selected' or 'batch'")
    batch = _get_batch(batch_id)
    results = batch.results
    if result_id is not None:
        try:
            results = [batch.result(result_id)]
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Result {result_id} not found.")
    selection = batch.snapshot() if scope == "selected" else None
    try:
        archive = pack(results, selection)
    except EmptySelection as e:
        raise HTTPException(status_code=409, detail=e.message)
    except ArchiveError as e:
        print(f"[archive] {e}", file=sys.stderr)
        raise HTTPException(status_code=500, detail=e.message)
    return Response(content=archive.data, media_type=archive.media_type, headers=_attachment(archive.filename))
