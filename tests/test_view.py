from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from s3_gateway.mount import MountStorageContext, MountView, StorageFileLayout


@pytest.fixture
def context(entities, objects):
    service = MagicMock()
    service.get_url.side_effect = lambda object_id: f"https://s3.test/{object_id}"
    return MountStorageContext(service, entities, objects)


@pytest.fixture
def bundle_view(context):
    return MountView(context, StorageFileLayout.BUNDLE)


@pytest.fixture
def object_view(context):
    return MountView(context, StorageFileLayout.OBJECT_ID)


class TestBundleLayout:
    def test_root_lists_groups(self, bundle_view):
        assert bundle_view.list_dir("/") == ["g1", "g2"]

    def test_group_lists_files(self, bundle_view):
        assert bundle_view.list_dir("/g1") == ["sample.bam", "sample.bam.bai"]
        assert bundle_view.list_dir("/g1/") == ["sample.bam", "sample.bam.bai"]

    def test_stat(self, bundle_view):
        assert bundle_view.stat("/").is_dir
        assert bundle_view.stat("/g2").is_dir
        stat = bundle_view.stat("/g1/sample.bam")
        assert not stat.is_dir
        assert stat.size == 1000
        assert stat.last_modified is not None

    def test_resolve(self, bundle_view):
        assert bundle_view.resolve("/g1/sample.bam").object_id == "A"
        assert bundle_view.resolve("/g1") is None
        assert bundle_view.resolve("/g2/sample.bam") is None

    def test_path_of(self, bundle_view, context):
        assert bundle_view.path_of(context.get_file("D")) == "/g2/calls.vcf.gz"

    def test_url(self, bundle_view):
        assert bundle_view.url("/g1/sample.bam.bai") == "https://s3.test/B"

    def test_missing_paths(self, bundle_view):
        with pytest.raises(FileNotFoundError):
            bundle_view.list_dir("/nope")
        with pytest.raises(FileNotFoundError):
            bundle_view.stat("/g1/other.bam")
        with pytest.raises(FileNotFoundError):
            bundle_view.url("/g1/other.bam")

    def test_directory_errors(self, bundle_view):
        with pytest.raises(NotADirectoryError):
            bundle_view.list_dir("/g1/sample.bam")
        with pytest.raises(IsADirectoryError):
            bundle_view.url("/g1")
        with pytest.raises(IsADirectoryError):
            bundle_view.url("/")

    def test_operations_are_counted(self, bundle_view, context):
        bundle_view.list_dir("/")
        bundle_view.stat("/g1/sample.bam")
        bundle_view.url("/g1/sample.bam")
        assert context.metrics() == {"list_dir": 1, "stat": 1, "url": 1}


class TestObjectIdLayout:
    def test_root_lists_objects(self, object_view):
        assert object_view.list_dir("/") == ["A", "B", "D"]

    def test_stat_and_url(self, object_view):
        assert object_view.stat("/D").size == 300
        assert object_view.url("/D") == "https://s3.test/D"

    def test_unknown_object(self, object_view):
        with pytest.raises(FileNotFoundError):
            object_view.stat("/C")
        assert object_view.resolve("/A/extra") is None
