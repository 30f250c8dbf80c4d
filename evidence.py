"""
evidence.py — Evidence photo files named after the artifact and its outcome.

Every photo is stored as {artifact_code}_{outcome}.jpg in one flat
directory, so the file name always tells which artifact it documents and
what it was scored. Removing stale photos is advisory: failures are logged
and counted, never raised.
"""

import glob
import logging
import os
import shutil

from errors import IOFailure, ValidationFailure

PHOTO_EXT = ".jpg"


def make_evidence_store(directory, mode="score"):
    return {"dir": directory, "mode": mode, "cleanup_failures": 0}


def encode_outcome(outcome, mode="score"):
    """85.0 -> "85_0" for scores, 3.0 -> "3" for ranks."""
    if mode == "rank":
        return str(int(outcome))
    return f"{outcome:.1f}".replace(".", "_")


def evidence_path_for(store, artifact_code, outcome):
    filename = f"{artifact_code}_{encode_outcome(outcome, store['mode'])}{PHOTO_EXT}"
    return os.path.join(store["dir"], filename)


def photos_for(store, artifact_code):
    pattern = os.path.join(glob.escape(store["dir"]), f"{glob.escape(artifact_code)}_*{PHOTO_EXT}")
    return sorted(glob.glob(pattern))


def _discard(store, path):
    try:
        if os.path.exists(path):
            os.remove(path)
            logging.info(f"Removed evidence file: {path}")
    except OSError as e:
        store["cleanup_failures"] += 1
        logging.warning(f"Could not remove {path} ({store['cleanup_failures']} cleanup failures so far): {e}")


def discard_photos_for(store, artifact_code, keep=None):
    for path in photos_for(store, artifact_code):
        if keep is not None and os.path.abspath(path) == os.path.abspath(keep):
            continue
        _discard(store, path)


def discard_file(store, path):
    _discard(store, path)


# ---------------------------------------------------------------------------
# COMMIT / RENAME
# ---------------------------------------------------------------------------


def commit_photo(store, temp_photo_path, artifact_code, outcome):
    """Store a freshly captured photo as the evidence for artifact_code."""
    final_path = evidence_path_for(store, artifact_code, outcome)
    try:
        os.makedirs(store["dir"], exist_ok=True)
    except OSError as e:
        raise IOFailure(f"Cannot create evidence directory {store['dir']}: {e}")

    discard_photos_for(store, artifact_code)

    try:
        shutil.copyfile(temp_photo_path, final_path)
    except OSError as e:
        raise IOFailure(f"Cannot store evidence photo {final_path}: {e}", code=artifact_code)

    _discard(store, temp_photo_path)
    logging.info(f"Evidence committed: {final_path}")
    return final_path


def rename_photo(store, existing_path, artifact_code, new_outcome):
    """Rename an existing evidence photo so its name carries new_outcome."""
    final_path = evidence_path_for(store, artifact_code, new_outcome)
    if os.path.abspath(existing_path) == os.path.abspath(final_path):
        return final_path

    if not os.path.exists(existing_path):
        raise ValidationFailure(f"Evidence photo missing: {existing_path}", reason="photo_required", code=artifact_code)

    discard_photos_for(store, artifact_code, keep=existing_path)
    try:
        os.replace(existing_path, final_path)
    except OSError as e:
        raise IOFailure(f"Cannot rename {existing_path} -> {final_path}: {e}", code=artifact_code)

    logging.info(f"Evidence renamed: {existing_path} -> {final_path}")
    return final_path


def clear_photos(store):
    """Delete every evidence photo (used when a new roster is imported)."""
    for path in glob.glob(os.path.join(glob.escape(store["dir"]), f"*{PHOTO_EXT}")):
        _discard(store, path)
