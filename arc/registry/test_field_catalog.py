import pytest

from arc.registry.field_catalog import DEFAULT_FIELD_GROUPS, FieldCatalog


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

class TestDefaults:
    def test_default_categories_in_order(self):
        assert FieldCatalog().categories == [
            "Core Profile",
            "Identity & Residence",
            "Academic Matrix",
            "Coding & Career",
            "Center of Excellence",
        ]

    def test_instances_do_not_share_state(self):
        a, b = FieldCatalog(), FieldCatalog()
        a.add_field("hackathon wins", "Coding & Career")
        assert "HACKATHON WINS" not in b.labels()
        assert "HACKATHON WINS" not in DEFAULT_FIELD_GROUPS["Coding & Career"]

    def test_default_labels_are_upper_case(self):
        for label in FieldCatalog().labels():
            assert label == label.strip().upper(), label

    def test_labels_flatten_in_order(self):
        labels = FieldCatalog().labels()
        assert labels[0] == "REG NO"
        assert labels[-1] == "COE PROJECTS"


# ---------------------------------------------------------------------------
# add_field
# ---------------------------------------------------------------------------

class TestAddField:
    def test_upper_cased_and_trimmed(self):
        catalog = FieldCatalog()
        assert catalog.add_field("  hackathon_wins ", "Coding & Career") is True
        assert catalog.groups["Coding & Career"][-1] == "HACKATHON_WINS"

    @pytest.mark.parametrize("label", ["", "   ", None])
    def test_blank_ignored(self, label):
        catalog = FieldCatalog()
        before = catalog.labels()
        assert catalog.add_field(label, "Core Profile") is False
        assert catalog.labels() == before

    def test_duplicate_ignored(self):
        catalog = FieldCatalog()
        assert catalog.add_field("name", "Core Profile") is False
        assert catalog.groups["Core Profile"].count("NAME") == 1

    def test_unknown_category(self):
        with pytest.raises(KeyError):
            FieldCatalog().add_field("X", "Nope")


# ---------------------------------------------------------------------------
# remove
# ---------------------------------------------------------------------------

class TestRemove:
    def test_remove_field(self):
        catalog = FieldCatalog()
        assert catalog.remove_field("Core Profile", "GENDER") is True
        assert "GENDER" not in catalog.labels()

    def test_remove_normalizes_label(self):
        catalog = FieldCatalog()
        assert catalog.remove_field("Academic Matrix", " cgpa (3 sem) ") is True
        assert "CGPA (3 SEM)" not in catalog.labels()

    def test_remove_missing_is_noop(self):
        catalog = FieldCatalog()
        assert catalog.remove_field("Core Profile", "SHOE SIZE") is False
        assert catalog.remove_field("Nope", "NAME") is False

    def test_remove_fields_counts(self):
        catalog = FieldCatalog()
        removed = catalog.remove_fields([
            ("Core Profile", "GENDER"),
            ("Academic Matrix", "GPA SEM1"),
            ("Academic Matrix", "NOT THERE"),
        ])
        assert removed == 2


# ---------------------------------------------------------------------------
# descriptors
# ---------------------------------------------------------------------------

class TestDescriptors:
    def test_one_per_label(self):
        catalog = FieldCatalog()
        assert len(catalog.descriptors()) == len(catalog.labels())

    def test_ids_unique(self):
        ids = [d.id for d in FieldCatalog().descriptors()]
        assert len(ids) == len(set(ids))

    def test_descriptor_shape(self):
        first = FieldCatalog().descriptors()[0]
        assert first.label == "REG NO"
        assert first.category == "Core Profile"
        assert first.id == "core-profile:reg-no"
