"""Field normalizer tests."""
from __future__ import annotations

from pathlib import Path

import pytest

from imagectl.interpolate import TemplateContext
from imagectl.normalize import normalize


def test_unknown_keys_are_errors(fixed_context: TemplateContext) -> None:
    """Every unknown key is reported separately."""
    fields = normalize({"folder_idd": "x", "zonee": "y", "zone": "z"}, context=fixed_context)

    assert fields.errors == [
        "Unknown configuration key 'folder_idd'.",
        "Unknown configuration key 'zonee'.",
    ]
    assert fields.values == {"zone": "z"}


def test_non_string_keys_are_errors(fixed_context: TemplateContext) -> None:
    """Keys must be strings."""
    fields = normalize({1: "x"}, context=fixed_context)  # type: ignore[dict-item]

    assert fields.errors == ["Configuration keys must be strings. Got 1."]


def test_explicit_empty_string_is_kept(fixed_context: TemplateContext) -> None:
    """An explicit empty value is distinct from an absent key."""
    fields = normalize({"image_family": ""}, context=fixed_context)

    assert fields.is_set("image_family")
    assert fields.values["image_family"] == ""
    assert not fields.is_set("zone")


@pytest.mark.parametrize(
    ("key", "value", "expected"),
    [
        ("disk_size_gb", 20, 20),
        ("disk_size_gb", "20", 20),
        ("ssh_port", "0x16", 22),
        ("use_ipv4_nat", True, True),
        ("use_ipv4_nat", "yes", True),
        ("use_ipv6", "false", False),
        ("folder_id", 12345, "12345"),
        ("image_product_ids", ["a", "b"], ("a", "b")),
        ("labels", {"env": "prod", "tier": 3}, {"env": "prod", "tier": "3"}),
        ("metadata", {"enable-oslogin": True}, {"enable-oslogin": "true"}),
    ],
)
def test_type_coercion(
    fixed_context: TemplateContext,
    key: str,
    value: object,
    expected: object,
) -> None:
    """Loosely-typed input is coerced to the field's type."""
    fields = normalize({key: value}, context=fixed_context)

    assert fields.errors == []
    assert fields.values[key] == expected


@pytest.mark.parametrize(
    ("key", "value", "fragment"),
    [
        ("disk_size_gb", "ten", "Invalid integer for disk_size_gb"),
        ("disk_size_gb", True, "Got boolean"),
        ("use_ipv6", "maybe", "Invalid boolean for use_ipv6"),
        ("labels", ["not", "a", "map"], "Expected labels to be a mapping"),
        ("image_product_ids", "single", "Expected image_product_ids to be a sequence"),
        ("folder_id", None, "Expected folder_id to be a string"),
        ("ssh_timeout", 300, "ssh_timeout must be a duration string"),
    ],
)
def test_type_errors_name_the_field(
    fixed_context: TemplateContext,
    key: str,
    value: object,
    fragment: str,
) -> None:
    """Coercion failures are attributed to the field."""
    fields = normalize({key: value}, context=fixed_context)

    assert len(fields.errors) == 1
    assert fragment in fields.errors[0]
    assert not fields.is_set(key)


def test_templates_expand_immediately(fixed_context: TemplateContext) -> None:
    """Templated strings and mapping values are rendered during normalization."""
    fields = normalize(
        {
            "image_name": "packer-{{ timestamp }}",
            "labels": {"built": "{{ timestamp }}"},
            "instance_name": "builder-{{ uuid }}",
        },
        context=fixed_context,
    )

    assert fields.errors == []
    assert fields.values["image_name"] == f"packer-{fixed_context.timestamp}"
    assert fields.values["labels"] == {"built": fixed_context.timestamp}
    assert fields.values["instance_name"] == "builder-0000-uuid"


def test_template_errors_name_the_field(fixed_context: TemplateContext) -> None:
    """Unknown template functions and syntax errors are per-field errors."""
    fields = normalize(
        {"image_name": "packer-{{ nosuchfunc() }}", "image_description": "{{ broken"},
        context=fixed_context,
    )

    assert len(fields.errors) == 2
    assert fields.errors[0].startswith("Failed to expand template in image_name:")
    assert fields.errors[1].startswith("Failed to expand template in image_description:")


def test_metadata_from_file_unreadable(fixed_context: TemplateContext, tmp_path: Path) -> None:
    """Unreadable files are errors naming the key and the path."""
    missing = tmp_path / "missing.sh"

    fields = normalize({"metadata_from_file": {"user-data": str(missing)}}, context=fixed_context)

    assert len(fields.errors) == 1
    message = fields.errors[0]
    assert f"cannot access file '{missing}'" in message
    assert "metadata key 'user-data'" in message
    assert fields.metadata == {}


def test_metadata_from_file_overrides_inline_with_warning(
    fixed_context: TemplateContext,
    tmp_path: Path,
) -> None:
    """A key set both inline and from a file keeps the file content and warns."""
    script = tmp_path / "startup.sh"
    script.write_text("#!/bin/sh\necho hi\n", encoding="utf-8")

    fields = normalize(
        {
            "metadata": {"user-data": "inline", "other": "x"},
            "metadata_from_file": {"user-data": str(script)},
        },
        context=fixed_context,
    )

    assert fields.errors == []
    assert fields.metadata == {"user-data": "#!/bin/sh\necho hi\n", "other": "x"}
    assert len(fields.warnings) == 1
    assert "user-data" in fields.warnings[0]


def test_normalize_does_not_write_files(fixed_context: TemplateContext, tmp_path: Path) -> None:
    """Normalization only reads; the directory is left unchanged."""
    script = tmp_path / "startup.sh"
    script.write_text("echo hi\n", encoding="utf-8")
    before = sorted(tmp_path.iterdir())

    normalize({"metadata_from_file": {"k": str(script)}}, context=fixed_context)

    assert sorted(tmp_path.iterdir()) == before


def test_empty_duration_is_left_unset(fixed_context: TemplateContext) -> None:
    """Blank durations are dropped so defaults can fill them."""
    fields = normalize({"ssh_timeout": "  ", "state_timeout": "10m"}, context=fixed_context)

    assert fields.errors == []
    assert not fields.is_set("ssh_timeout")
    assert fields.values["state_timeout"] == "10m"
