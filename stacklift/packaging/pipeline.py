"""
Packaging pipeline: scan, archive, upload, rewrite.

Every asset of the whole template tree, nested templates included, is
archived before the first upload starts, and every upload resolves before
the top-level template is rewritten. Any failure aborts the run before a
stack operation is submitted.
"""

import logging
from pathlib import Path

from stacklift.cancellation import CancellationToken
from stacklift.config import RunConfig
from stacklift.errors import AssetUnreadable, ConfigurationError, TemplateError
from stacklift.packaging.archive import TEMPLATE_EXTENSION, PackagedAsset, package_bytes, package_path
from stacklift.packaging.uploader import S3Uploader
from stacklift.template import (
    AssetKind,
    AssetReference,
    Position,
    Template,
    load_template,
    rewrite_template,
    scan_template,
)

LOG = logging.getLogger(__name__)


def package_template(
    template: Template,
    config: RunConfig,
    uploader: S3Uploader | None,
    token: CancellationToken | None = None,
) -> Template:
    """
    Package and upload a template's local assets.

    Nested templates (AWS::CloudFormation::Stack TemplateURL) are packaged
    recursively and uploaded as rendered YAML. Object keys depend only on
    content, so nested templates are rendered against their future
    locations and all uploads of the tree run as one batch.

    Args:
        template: Parsed template
        config: Run configuration (worker count)
        uploader: Destination for packaged assets; only required when the
            template references local assets
        token: Cancellation token threaded into uploads

    Returns:
        The rewritten template, or `template` itself when nothing was found

    Raises:
        ConfigurationError: If assets were found but no uploader was given
        AssetError, UploadError, Interrupted: Packaging failures
    """
    parents = (template.source,) if template.source is not None else ()
    pending: dict[Position, PackagedAsset] = {}
    references = _archive_template(template, uploader, token, parents, pending, ())
    if not references:
        return template

    LOG.debug("archived %d asset(s), uploading", len(pending))
    records = uploader.upload_all(pending, token=token, max_workers=config.max_upload_workers)
    return rewrite_template(template, references, records)


def _archive_template(
    template: Template,
    uploader: S3Uploader | None,
    token: CancellationToken | None,
    parents: tuple[Path, ...],
    pending: dict[Position, PackagedAsset],
    scope: Position,
) -> list[AssetReference]:
    """Archive every asset of `template` into `pending`, keyed under `scope`."""
    references = scan_template(template)
    if references and uploader is None:
        raise ConfigurationError(
            f"{template.name} references {len(references)} local asset(s); "
            "an S3 bucket is required to package them (--s3-bucket)"
        )

    for reference in references:
        if token is not None:
            token.raise_if_cancelled()
        pending[scope + reference.position] = _archive_reference(
            reference, uploader, token, parents, pending
        )
    return references


def _archive_reference(
    reference: AssetReference,
    uploader: S3Uploader,
    token: CancellationToken | None,
    parents: tuple[Path, ...],
    pending: dict[Position, PackagedAsset],
) -> PackagedAsset:
    if reference.kind is AssetKind.ZIP:
        return package_path(reference.local_path)

    path = reference.local_path.resolve()
    if path in parents:
        raise AssetUnreadable(path, "nested template includes itself", reference.resource_id)
    try:
        nested = load_template(path)
    except TemplateError as e:
        raise AssetUnreadable(path, str(e), reference.resource_id) from e

    LOG.debug("packaging nested template %s", path)
    scope = (str(path),)
    references = _archive_template(nested, uploader, token, parents + (path,), pending, scope)
    planned = {ref.position: uploader.locate(pending[scope + ref.position]) for ref in references}
    rendered = rewrite_template(nested, references, planned)
    return package_bytes(rendered.dump().encode("utf-8"), TEMPLATE_EXTENSION, path)
