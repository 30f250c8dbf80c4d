"""
roster.py — The entrant roster and its CSV mirror.

The roster is a small in-memory list of Entrant records. Records are never
modified in place: a mutation builds a copy with _replace(), swaps it in by
id, and rewrites the whole CSV file. The rewrite goes to a temp file in the
same directory and is renamed over the old file, so a crash mid-write
leaves the previous version intact.

Single writer assumed: nothing here locks the file or the list.
"""

import csv
import logging
import os
import shutil
import tempfile
from collections import namedtuple

from errors import Conflict, IOFailure, NotFound, ValidationFailure
from evidence import clear_photos, discard_file

# ---------------------------------------------------------------------------
# DATA TYPES
# ---------------------------------------------------------------------------

HEADER = [
    "entryCode", "name", "group", "project", "team", "advisor",
    "artifactCode", "checkedIn", "outcome", "evidencePath",
]

_EntrantFields = namedtuple(
    "Entrant",
    ["id", "entry_code", "name", "group", "project", "team", "advisor",
     "artifact_code", "outcome", "evidence_path"],
    defaults=(None,) * 8,
)


class Entrant(_EntrantFields):
    __slots__ = ()

    @property
    def checked_in(self):
        # artifact_code is the single source of truth for check-in
        return self.artifact_code is not None

    @property
    def scored(self):
        return self.outcome is not None


# ---------------------------------------------------------------------------
# CSV ROWS
# ---------------------------------------------------------------------------


def _cell(row, index):
    if index >= len(row):
        return None
    value = row[index].strip()
    return value or None


def parse_row(row, row_index):
    """Build an Entrant from one CSV row. Raises ValueError for bad rows.

    Only the first six columns are required; artifactCode, checkedIn,
    outcome and evidencePath default to unset. checkedIn is not read back:
    it is implied by artifactCode.

    Cells are stripped and empty cells read as None, so surrounding
    whitespace and empty strings do not survive a save/load round trip.
    """
    entry_code = _cell(row, 0)
    if entry_code is None:
        raise ValueError(f"Row {row_index}: missing entry code")

    outcome = _cell(row, 8)
    return Entrant(
        id=row_index,
        entry_code=entry_code,
        name=_cell(row, 1),
        group=_cell(row, 2),
        project=_cell(row, 3),
        team=_cell(row, 4),
        advisor=_cell(row, 5),
        artifact_code=_cell(row, 6),
        outcome=float(outcome) if outcome is not None else None,
        evidence_path=_cell(row, 9),
    )


def entrant_to_row(entrant):
    return [
        entrant.entry_code,
        entrant.name or "",
        entrant.group or "",
        entrant.project or "",
        entrant.team or "",
        entrant.advisor or "",
        entrant.artifact_code or "",
        "1" if entrant.checked_in else "0",
        "" if entrant.outcome is None else str(entrant.outcome),
        entrant.evidence_path or "",
    ]


# ---------------------------------------------------------------------------
# FILE I/O
# ---------------------------------------------------------------------------


def load_entrants(path):
    """Parse a roster CSV. Blank, unparseable and duplicate-code rows are skipped."""
    if not os.path.exists(path):
        logging.info(f"No roster file at {path}")
        return []

    try:
        with open(path, "r", newline="", encoding="utf-8-sig") as f:
            rows = list(csv.reader(f))
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise IOFailure(f"Cannot read roster {path}: {e}")

    entrants = []
    seen_entry, seen_artifact = set(), set()
    for row_index, row in enumerate(rows[1:], start=1):
        if not any(cell.strip() for cell in row):
            continue
        try:
            entrant = parse_row(row, row_index)
        except ValueError as e:
            logging.debug(f"Skipping unparseable roster row: {e}")
            continue

        # First occurrence wins; later rows would be unreachable by lookup
        if entrant.entry_code in seen_entry or entrant.artifact_code in seen_artifact:
            logging.warning(
                f"Skipping roster row {row_index}: duplicate code "
                f"(entry {entrant.entry_code}, artifact {entrant.artifact_code})"
            )
            continue
        seen_entry.add(entrant.entry_code)
        if entrant.artifact_code is not None:
            seen_artifact.add(entrant.artifact_code)
        entrants.append(entrant)

    logging.info(f"Loaded {len(entrants)} entrants from {path}")
    return entrants


def save_entrants(path, entrants):
    """Rewrite the roster CSV atomically (temp file, then rename)."""
    directory = os.path.dirname(os.path.abspath(path))
    tmp_path = None
    try:
        os.makedirs(directory, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", dir=directory, prefix=".roster-", suffix=".tmp",
            newline="", encoding="utf-8", delete=False,
        ) as f:
            tmp_path = f.name
            writer = csv.writer(f)
            writer.writerow(HEADER)
            writer.writerows(entrant_to_row(e) for e in entrants)
        os.replace(tmp_path, path)
    except OSError as e:
        if tmp_path and os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise IOFailure(f"Cannot write roster {path}: {e}")

    logging.debug(f"Saved {len(entrants)} entrants to {path}")


# ---------------------------------------------------------------------------
# ROSTER
# ---------------------------------------------------------------------------


def make_roster(path, evidence_store=None):
    return {"path": path, "entrants": [], "evidence": evidence_store}


def roster_load(roster):
    roster["entrants"] = load_entrants(roster["path"])
    return roster["entrants"]


def roster_save(roster):
    save_entrants(roster["path"], roster["entrants"])


def find_by_entry_code(roster, entry_code):
    return next((e for e in roster["entrants"] if e.entry_code == entry_code), None)


def find_by_artifact_code(roster, artifact_code):
    return next((e for e in roster["entrants"] if e.artifact_code == artifact_code), None)


def find_by_id(roster, entrant_id):
    return next((e for e in roster["entrants"] if e.id == entrant_id), None)


def roster_update(roster, entrant):
    """Swap in entrant by id and persist the whole roster.

    If the save fails the in-memory change stays; the file catches up on
    the next successful save.
    """
    for index, existing in enumerate(roster["entrants"]):
        if existing.id == entrant.id:
            roster["entrants"][index] = entrant
            break
    else:
        raise NotFound(f"No entrant with id {entrant.id}", code=entrant.entry_code)

    roster_save(roster)
    return entrant


def bind_artifact(roster, entry_code, artifact_code):
    entrant = find_by_entry_code(roster, entry_code)
    if entrant is None:
        raise NotFound(f"Entrant not found: {entry_code}", reason="entrant_not_found", code=entry_code)

    holder = find_by_artifact_code(roster, artifact_code)
    if holder is not None and holder.id != entrant.id:
        raise Conflict(
            f"Artifact {artifact_code} already bound to {holder.entry_code}",
            reason="artifact_taken", code=artifact_code,
        )

    updated = roster_update(roster, entrant._replace(artifact_code=artifact_code))
    logging.info(f"Bound artifact {artifact_code} to entrant {entry_code}")
    return updated


def record_outcome(roster, artifact_code, outcome, evidence_path):
    """Set outcome and evidence. Removing the old photo is the caller's job."""
    if (outcome is None) != (evidence_path is None):
        raise ValidationFailure(
            f"Outcome and evidence must be set together for {artifact_code}",
            reason="photo_required", code=artifact_code,
        )
    entrant = find_by_artifact_code(roster, artifact_code)
    if entrant is None:
        raise NotFound(f"Artifact not found: {artifact_code}", reason="artifact_not_found", code=artifact_code)

    updated = roster_update(roster, entrant._replace(outcome=outcome, evidence_path=evidence_path))
    logging.info(f"Recorded outcome {outcome} for artifact {artifact_code}")
    return updated


# ---------------------------------------------------------------------------
# MANAGEMENT
# ---------------------------------------------------------------------------


def import_roster(roster, source_path):
    """Replace the roster with the contents of source_path.

    Evidence photos from the previous roster are discarded.
    """
    entrants = load_entrants(source_path)
    if not entrants:
        raise ValidationFailure(f"No entrants in {source_path}", reason="empty_roster")

    save_entrants(roster["path"], entrants)
    if roster["evidence"] is not None:
        clear_photos(roster["evidence"])

    roster_load(roster)
    logging.info(f"Imported roster from {source_path}: {len(roster['entrants'])} entrants")
    return roster["entrants"]


def reset_roster(roster):
    """Forget everything: entrants, roster file and evidence directory."""
    roster["entrants"] = []
    try:
        if os.path.exists(roster["path"]):
            os.remove(roster["path"])
        if roster["evidence"] is not None and os.path.isdir(roster["evidence"]["dir"]):
            shutil.rmtree(roster["evidence"]["dir"])
    except OSError as e:
        raise IOFailure(f"Reset failed: {e}")
    logging.warning(f"Roster reset: {roster['path']} deleted")


def edit_entrant(roster, entrant):
    """Apply a manual edit, refusing duplicate entry or artifact codes."""
    if not (entrant.entry_code or "").strip():
        raise ValidationFailure("Entry code must not be empty", reason="empty_entry_code")

    for other in roster["entrants"]:
        if other.id == entrant.id:
            continue
        if other.entry_code == entrant.entry_code:
            raise Conflict(f"Duplicate entry code {entrant.entry_code}", reason="entry_code_taken", code=entrant.entry_code)
        if entrant.artifact_code and other.artifact_code == entrant.artifact_code:
            raise Conflict(f"Duplicate artifact code {entrant.artifact_code}", reason="artifact_taken", code=entrant.artifact_code)

    if entrant.artifact_code == "":
        entrant = entrant._replace(artifact_code=None)
    return roster_update(roster, entrant)


def clear_checkins(roster):
    roster["entrants"] = [e._replace(artifact_code=None) for e in roster["entrants"]]
    roster_save(roster)
    logging.warning("All check-ins cleared")


def clear_outcomes(roster):
    for entrant in roster["entrants"]:
        if entrant.evidence_path and roster["evidence"] is not None:
            discard_file(roster["evidence"], entrant.evidence_path)
    roster["entrants"] = [e._replace(outcome=None, evidence_path=None) for e in roster["entrants"]]
    roster_save(roster)
    logging.warning("All outcomes cleared")


# ---------------------------------------------------------------------------
# QUERIES
# ---------------------------------------------------------------------------


def scored_count(roster):
    return sum(1 for e in roster["entrants"] if e.scored)


def roster_stats(roster):
    total = len(roster["entrants"])
    checked_in = sum(1 for e in roster["entrants"] if e.checked_in)
    return {
        "total": total,
        "checked_in": checked_in,
        "unchecked": total - checked_in,
        "scored": scored_count(roster),
    }


def scored_entrants(roster):
    return [e for e in roster["entrants"] if e.scored]


def unscored_entrants(roster):
    return [e for e in roster["entrants"] if not e.scored]


def search(roster, query):
    if not query:
        return list(roster["entrants"])
    needle = query.lower()

    def matches(e):
        fields = (e.name, e.entry_code, e.project, e.team, e.advisor, e.group)
        return any(field and needle in field.lower() for field in fields)

    return [e for e in roster["entrants"] if matches(e)]


def groups(roster):
    return sorted({e.group for e in roster["entrants"] if e.group})


def filter_by_group(roster, group):
    if not group:
        return list(roster["entrants"])
    return [e for e in roster["entrants"] if e.group == group]
