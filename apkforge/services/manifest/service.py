"""
Manifest Synthesis Service.

Pure transform from the project configuration to the AndroidManifest.xml
document. The same configuration and profile always give byte-identical
text: attributes appear in a fixed order, only for values that are set, and
repeated declarations keep their order and multiplicity.
"""

from __future__ import annotations

from typing import Any

from ...core.config import ManifestPolicy
from ...core.exceptions import ConfigError
from ...core.logging import get_logger
from ...models.manifest import ANDROID_NS, ManifestNode, serialize
from ...models.project import (
    Activity,
    Application,
    Feature,
    IntentData,
    IntentFilter,
    MetaData,
    Permission,
    ProjectConfig,
    Queries,
    normalize_package_name,
)
from ...models.target import Profile

logger = get_logger(__name__)

MAIN_ACTION = "android.intent.action.MAIN"
LAUNCHER_CATEGORY = "android.intent.category.LAUNCHER"
LIB_NAME_META = "android.app.lib_name"


def _text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _attrs(*pairs: tuple[str, Any]) -> dict[str, str]:
    """Build an attribute mapping, dropping unset values."""
    return {name: text for name, value in pairs if (text := _text(value)) is not None}


def _node(tag: str, attributes: dict[str, str] | None = None, children: list[ManifestNode] | None = None) -> ManifestNode:
    return ManifestNode(tag=tag, attributes=attributes or {}, children=children or [])


class ManifestSynthesizer:
    """Service that renders the package manifest."""

    def __init__(self, policy: ManifestPolicy | None = None) -> None:
        self.policy = policy or ManifestPolicy()

    def synthesize(self, config: ProjectConfig, profile: str = Profile.DEV) -> ManifestNode:
        """Build the manifest document for a configuration.

        Raises:
            InvalidPackageName: If the package identifier does not normalize.
            ConfigError: If a query provider lacks the name aapt requires.
        """
        package = normalize_package_name(config.package)

        manifest_attrs = {"xmlns:android": ANDROID_NS, "package": package}
        manifest_attrs.update(
            _attrs(
                ("android:sharedUserId", config.shared_user_id),
                ("android:versionCode", config.version_code),
                ("android:versionName", config.version),
            )
        )

        children = [
            _node(
                "uses-sdk",
                _attrs(
                    ("android:minSdkVersion", config.sdk.min_sdk_version),
                    ("android:targetSdkVersion", config.target_sdk),
                    ("android:maxSdkVersion", config.sdk.max_sdk_version),
                ),
            )
        ]
        children.extend(self._feature(feature) for feature in config.uses_feature)
        children.extend(self._permission(permission) for permission in config.uses_permission)
        if config.queries is not None:
            children.append(self._queries(config.queries))
        children.append(self._application(config, config.application, profile))

        return _node("manifest", manifest_attrs, children)

    def render(self, config: ProjectConfig, profile: str = Profile.DEV) -> str:
        """Synthesize and serialize in one step."""
        text = serialize(self.synthesize(config, profile))
        logger.debug("Manifest rendered", package=config.package, profile=profile, bytes=len(text))
        return text

    @staticmethod
    def _feature(feature: Feature) -> ManifestNode:
        gl_es = None
        if feature.opengles_version is not None:
            major, minor = feature.opengles_version
            gl_es = f"0x{major:04}{minor:04}"
        return _node(
            "uses-feature",
            _attrs(
                ("android:name", feature.name),
                ("android:glEsVersion", gl_es),
                ("android:required", feature.required),
                ("android:version", feature.version),
            ),
        )

    @staticmethod
    def _permission(permission: Permission) -> ManifestNode:
        return _node(
            "uses-permission",
            _attrs(
                ("android:name", permission.name),
                ("android:maxSdkVersion", permission.max_sdk_version),
            ),
        )

    @staticmethod
    def _data(data: IntentData) -> ManifestNode:
        return _node(
            "data",
            _attrs(
                ("android:scheme", data.scheme),
                ("android:host", data.host),
                ("android:port", data.port),
                ("android:path", data.path),
                ("android:pathPrefix", data.path_prefix),
                ("android:mimeType", data.mime_type),
            ),
        )

    @staticmethod
    def _named(tag: str, name: str) -> ManifestNode:
        return _node(tag, {"android:name": name})

    def _queries(self, queries: Queries) -> ManifestNode:
        children: list[ManifestNode] = []
        for index, provider in enumerate(queries.provider):
            if provider.name is None and self.policy.provider_name_required:
                raise ConfigError(
                    message="query providers need a name for the manifest compiler",
                    field_name=f"queries.provider[{index}].name",
                )
            children.append(
                _node(
                    "provider",
                    _attrs(("android:authorities", provider.authorities), ("android:name", provider.name)),
                )
            )
        for intent in queries.intent:
            children.append(
                _node(
                    "intent",
                    children=[self._named("action", action) for action in intent.actions]
                    + [self._data(data) for data in intent.data],
                )
            )
        for package in queries.package:
            children.append(self._named("package", package.name))
        return _node("queries", children=children)

    @staticmethod
    def _meta_data(entry: MetaData) -> ManifestNode:
        return _node("meta-data", {"android:name": entry.name, "android:value": entry.value})

    def _intent_filter(self, intent_filter: IntentFilter) -> ManifestNode:
        return _node(
            "intent-filter",
            children=[self._named("action", action) for action in intent_filter.actions]
            + [self._named("category", category) for category in intent_filter.categories]
            + [self._data(data) for data in intent_filter.data],
        )

    def _application(self, config: ProjectConfig, application: Application, profile: str) -> ManifestNode:
        debuggable = application.debuggable
        if debuggable is None:
            debuggable = profile == Profile.DEV

        attributes = _attrs(
            ("android:debuggable", debuggable),
            ("android:theme", application.theme),
            ("android:hasCode", self.policy.has_code),
            ("android:icon", application.icon),
            ("android:label", application.label if application.label is not None else config.lib_name),
            ("android:extractNativeLibs", application.extract_native_libs),
            ("android:usesCleartextTraffic", application.uses_cleartext_traffic),
        )
        children = [self._meta_data(entry) for entry in application.meta_data]
        children.append(self._activity(config, application.activity))
        return _node("application", attributes, children)

    def _activity(self, config: ProjectConfig, activity: Activity) -> ManifestNode:
        exported = activity.exported
        if exported is None and config.target_sdk >= self.policy.exported_required_sdk:
            exported = True

        config_changes = activity.config_changes
        if config_changes is None:
            config_changes = self.policy.default_config_changes

        attributes = _attrs(
            ("android:configChanges", config_changes),
            ("android:label", activity.label),
            ("android:launchMode", activity.launch_mode),
            ("android:name", self.policy.activity_name),
            ("android:screenOrientation", activity.orientation),
            ("android:exported", exported),
            ("android:resizeableActivity", activity.resizeable_activity),
            ("android:alwaysRetainTaskState", activity.always_retain_task_state),
        )

        meta_data = list(activity.meta_data)
        meta_data.append(MetaData(name=LIB_NAME_META, value=config.lib_name))

        intent_filters = list(activity.intent_filter)
        if not any(MAIN_ACTION in f.actions for f in intent_filters):
            intent_filters.append(IntentFilter(actions=[MAIN_ACTION], categories=[LAUNCHER_CATEGORY]))

        children = [self._meta_data(entry) for entry in meta_data]
        children.extend(self._intent_filter(f) for f in intent_filters)
        return _node("activity", attributes, children)
