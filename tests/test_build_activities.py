from datetime import date

import pytest

from sequencing_engine.core.build.activities import (
    build_activities,
    classify_work_item,
    constraints_for,
    is_weather_dependent,
    quality_checkpoints,
    resource_demands,
)
from sequencing_engine.core.build.phases import PHASE_TEMPLATES, PhaseTemplate, create_phases, phase_for_category
from sequencing_engine.core.errors import ScheduleConfigError
from sequencing_engine.core.model import ActivityConstraint, EquipmentLine, LaborLine, WorkItem

START = date(2024, 1, 1)


def _item(wid: str, name: str, duration: int = 3, category: str = "General", **kw) -> WorkItem:
    return WorkItem(id=wid, name=name, category=category, duration_days=duration, **kw)


def test_phases_are_stacked_back_to_back():
    phases = create_phases(START)
    assert [p.id for p in phases] == [f"phase-{i}" for i in range(1, len(PHASE_TEMPLATES) + 1)]
    assert phases[0].start_date == START
    assert phases[0].prerequisites == []
    for prev, cur in zip(phases, phases[1:]):
        assert cur.start_date == prev.end_date
        assert cur.prerequisites == [prev.id]
    assert phases[2].category == "foundation"
    assert phases[2].start_date == date(2024, 1, 22)


def test_phase_for_category_returns_first_match():
    phases = create_phases(START)
    mep = phase_for_category(phases, "mep")
    assert mep is not None and mep.name == "MEP Rough-In"
    assert phase_for_category(phases[:2], "mep") is None


@pytest.mark.parametrize(
    "name,category,expected",
    [
        ("Foundation Pour", "Concrete", "foundation"),
        ("Structural Framing", "Framing", "structure"),
        ("Electrical Rough-In", "Electrical", "mep"),
        ("Electrical Trim", "Electrical", "finishes"),
        ("Install Membrane", "Roofing", "envelope"),
        ("Punch List", "General", "closeout"),
        ("Widgets", "General", "mep"),
    ],
)
def test_classify_work_item(name, category, expected):
    assert classify_work_item(_item("X", name, category=category)) == expected


def test_weather_dependency_by_name_or_category():
    assert is_weather_dependent(_item("A", "Foundation Pour"))
    assert is_weather_dependent(_item("B", "Install Membrane", category="Roofing"))
    assert not is_weather_dependent(_item("C", "Electrical Trim", category="Electrical"))


def test_resource_demands():
    item = _item(
        "A",
        "Electrical Rough-In",
        labor=[LaborLine("Electrician", 40, 3000), LaborLine("Laborer", 16, 600)],
        equipment=[EquipmentLine("LIFT-19", 3, 900)],
    )
    demands = resource_demands(item)
    assert [(d.kind, d.resource_id) for d in demands] == [
        ("labor", "Electrician"),
        ("labor", "Laborer"),
        ("equipment", "LIFT-19"),
    ]
    assert demands[0].quantity == 5.0
    assert demands[0].unit == "crew-days"
    assert [d.critical for d in demands] == [True, False, True]


def test_quality_checkpoints_for_electrical_work():
    assert quality_checkpoints(_item("A", "Framing", category="Carpentry")) == []
    rough = quality_checkpoints(_item("B", "Electrical Rough-In", category="Electrical"))
    trim = quality_checkpoints(_item("C", "Electrical Trim", category="Electrical"))
    assert [c.name for c in rough] == ["Rough Electrical Inspection"]
    assert [c.name for c in trim] == ["Rough Electrical Inspection", "Final Electrical Inspection"]


def test_constraints_match_by_name_substring():
    permit = ActivityConstraint("start_no_earlier_than", date(2024, 1, 3), "Permit", "foundation")
    everywhere = ActivityConstraint("finish_no_later_than", date(2024, 6, 1))
    assert constraints_for("Foundation Pour", [permit, everywhere]) == [permit, everywhere]
    assert constraints_for("Alpha", [permit, everywhere]) == [everywhere]
    assert constraints_for("Alpha", None) == []


def test_build_activities_attaches_to_phases():
    phases = create_phases(START)
    items = [_item("A", "Foundation Pour", 5), _item("B", "Alpha", 2)]
    activities, diagnostics = build_activities(items, phases)
    assert diagnostics == []
    assert [a.id for a in activities] == ["activity-1", "activity-2"]
    foundation = phase_for_category(phases, "foundation")
    assert activities[0].phase_id == foundation.id
    assert foundation.activity_ids == ["activity-1"]
    assert activities[0].start_date == foundation.start_date
    assert activities[0].weather_dependent is True
    assert activities[1].phase_id == "phase-6"


def test_unmapped_work_item_is_fatal_by_default():
    phases = create_phases(START, [PhaseTemplate("Foundation Work", "foundation", 10, True)])
    with pytest.raises(ScheduleConfigError) as exc:
        build_activities([_item("A", "Foundation Pour"), _item("B", "Alpha")], phases)
    assert exc.value.code == "E_UNMAPPED_WORK_ITEM"
    assert exc.value.entities == ("B",)


def test_unmapped_work_item_can_be_dropped_with_diagnostic():
    phases = create_phases(START, [PhaseTemplate("Foundation Work", "foundation", 10, True)])
    activities, diagnostics = build_activities(
        [_item("A", "Foundation Pour"), _item("B", "Alpha")], phases, drop_unmapped=True
    )
    assert [a.name for a in activities] == ["Foundation Pour"]
    assert [d.code for d in diagnostics] == ["W_UNMAPPED_WORK_ITEM"]
    assert diagnostics[0].severity == "warning"


def test_negative_duration_is_fatal():
    with pytest.raises(ScheduleConfigError) as exc:
        build_activities([_item("A", "Alpha", -1)], create_phases(START))
    assert exc.value.code == "E_NEGATIVE_DURATION"
    assert exc.value.entities == ("A",)

def test_data_quality_diagnostics():
    phases = create_phases(START)
    items = [
        _item("A", "Alpha", 0),
        _item("B", "Bravo", 2, labor=[LaborLine(" ", 8)]),
        _item("C", "Charlie", 2, labor=[LaborLine("Plumber", 8), LaborLine("Carpenter", 8)]),
    ]
    _, diagnostics = build_activities(items, phases, known_resources={"labor": {"Carpenter"}})
    codes = sorted(d.code for d in diagnostics)
    assert codes == ["W_EMPTY_RESOURCE_ID", "W_UNKNOWN_RESOURCE", "W_ZERO_DURATION"]
    unknown = next(d for d in diagnostics if d.code == "W_UNKNOWN_RESOURCE")
    assert unknown.entities == ("activity-3", "Plumber")
