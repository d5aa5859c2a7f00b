"""
Tests for the packaging pipeline.
"""

import pytest

from stacklift.cancellation import CancellationToken
from stacklift.config import RunConfig
from stacklift.errors import AssetNotFound, AssetUnreadable, ConfigurationError, Interrupted
from stacklift.packaging import S3Uploader, package_template
from stacklift.template import load_template, parse_template


@pytest.fixture
def config():
    return RunConfig(s3_bucket="artifacts", s3_prefix="builds")


class TestPackageTemplate:
    """Tests for package_template."""

    def test_lambda_code_is_uploaded_and_rewritten(self, lambda_project, fake_s3, config):
        """Test a local directory ends up as an S3 location."""
        uploader = S3Uploader(fake_s3, "artifacts", "builds")

        packaged = package_template(load_template(lambda_project), config, uploader)

        assert len(fake_s3.puts) == 1
        code = packaged.to_plain()["Resources"]["Fn"]["Properties"]["Code"]
        assert code == {"S3Bucket": "artifacts", "S3Key": fake_s3.puts[0]}
        assert code["S3Key"].startswith("builds/")
        assert code["S3Key"].endswith(".zip")

    def test_repeat_run_reuses_objects(self, lambda_project, fake_s3, config):
        """Test unchanged code produces the same key and no new upload."""
        uploader = S3Uploader(fake_s3, "artifacts", "builds")
        first = package_template(load_template(lambda_project), config, uploader)

        second = package_template(load_template(lambda_project), config, uploader)

        assert len(fake_s3.puts) == 1
        assert second.dump() == first.dump()

    def test_nested_template_is_packaged_recursively(self, tmp_path, fake_s3, config):
        """Test a nested stack's assets and the rendered nested template are uploaded."""
        (tmp_path / "nested").mkdir()
        (tmp_path / "nested" / "fn").mkdir()
        (tmp_path / "nested" / "fn" / "index.py").write_text("x = 1\n")
        (tmp_path / "nested" / "child.yaml").write_text(
            "Resources:\n"
            "  Fn:\n"
            "    Type: AWS::Lambda::Function\n"
            "    Properties:\n"
            "      Code: fn\n"
        )
        parent = tmp_path / "parent.yaml"
        parent.write_text(
            "Resources:\n"
            "  Child:\n"
            "    Type: AWS::CloudFormation::Stack\n"
            "    Properties:\n"
            "      TemplateURL: nested/child.yaml\n"
        )
        uploader = S3Uploader(fake_s3, "artifacts", "builds")

        packaged = package_template(load_template(parent), config, uploader)

        assert len(fake_s3.puts) == 2
        zip_key = next(key for key in fake_s3.puts if key.endswith(".zip"))
        yaml_key = next(key for key in fake_s3.puts if key.endswith(".yaml"))
        url = packaged.to_plain()["Resources"]["Child"]["Properties"]["TemplateURL"]
        assert url == f"https://s3.eu-west-1.amazonaws.com/artifacts/{yaml_key}"

        child = parse_template(fake_s3.objects[("artifacts", yaml_key)].decode())
        assert child.to_plain()["Resources"]["Fn"]["Properties"]["Code"] == {
            "S3Bucket": "artifacts",
            "S3Key": zip_key,
        }

    def test_self_including_template(self, tmp_path, fake_s3, config):
        """Test a template nesting itself is rejected."""
        path = tmp_path / "loop.yaml"
        path.write_text(
            "Resources:\n"
            "  Self:\n"
            "    Type: AWS::CloudFormation::Stack\n"
            "    Properties:\n"
            "      TemplateURL: loop.yaml\n"
        )

        with pytest.raises(AssetUnreadable, match="includes itself"):
            package_template(load_template(path), config, S3Uploader(fake_s3, "artifacts"))

    def test_missing_asset_uploads_nothing(self, tmp_path, fake_s3, config):
        """Test a missing asset aborts before any upload."""
        (tmp_path / "present").mkdir()
        path = tmp_path / "stack.yaml"
        path.write_text(
            "Resources:\n"
            "  A:\n"
            "    Type: AWS::Lambda::Function\n"
            "    Properties:\n"
            "      Code: present\n"
            "  B:\n"
            "    Type: AWS::Lambda::Function\n"
            "    Properties:\n"
            "      Code: absent\n"
        )

        with pytest.raises(AssetNotFound):
            package_template(load_template(path), config, S3Uploader(fake_s3, "artifacts"))

        assert fake_s3.heads == []

    def test_broken_nested_sibling_uploads_nothing(self, tmp_path, fake_s3, config):
        """Test a failing nested stack aborts before a valid sibling is uploaded."""
        (tmp_path / "fn").mkdir()
        (tmp_path / "fn" / "index.py").write_text("x = 1\n")
        (tmp_path / "a.yaml").write_text(
            "Resources:\n"
            "  Fn:\n"
            "    Type: AWS::Lambda::Function\n"
            "    Properties:\n"
            "      Code: fn\n"
        )
        (tmp_path / "b.yaml").write_text(
            "Resources:\n"
            "  Fn:\n"
            "    Type: AWS::Lambda::Function\n"
            "    Properties:\n"
            "      Code: missing\n"
        )
        parent = tmp_path / "parent.yaml"
        parent.write_text(
            "Resources:\n"
            "  A:\n"
            "    Type: AWS::CloudFormation::Stack\n"
            "    Properties:\n"
            "      TemplateURL: a.yaml\n"
            "  B:\n"
            "    Type: AWS::CloudFormation::Stack\n"
            "    Properties:\n"
            "      TemplateURL: b.yaml\n"
        )

        with pytest.raises(AssetNotFound):
            package_template(load_template(parent), config, S3Uploader(fake_s3, "artifacts"))

        assert fake_s3.heads == []
        assert fake_s3.puts == []

    def test_no_assets_no_uploader(self):
        """Test a template without local assets needs no bucket."""
        template = parse_template("Resources:\n  T:\n    Type: AWS::SNS::Topic\n")

        assert package_template(template, RunConfig(), None) is template

    def test_assets_without_uploader(self, lambda_project):
        """Test local assets without a bucket is a configuration error."""
        with pytest.raises(ConfigurationError, match="--s3-bucket"):
            package_template(load_template(lambda_project), RunConfig(), None)

    def test_cancelled(self, lambda_project, fake_s3, config):
        """Test a cancelled run stops before archiving."""
        token = CancellationToken()
        token.cancel()

        with pytest.raises(Interrupted):
            package_template(
                load_template(lambda_project), config, S3Uploader(fake_s3, "artifacts"), token
            )

        assert fake_s3.puts == []
