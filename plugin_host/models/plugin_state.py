"""
Plugin State Models

Durable runtime state for plugins: which plugins are enabled, which version
of each is installed, per-plugin settings and the capabilities plugins have
declared. Descriptors themselves are never persisted; they are read from disk.
"""

from sqlalchemy import Column, DateTime, Index, Integer, String, Text

from plugin_host.database import Base
from plugin_host.utils.clock import utcnow


class PluginEnabled(Base):
    """
    One row per enabled plugin.

    Presence of a row is the only source of truth for "is this plugin active".
    """

    __tablename__ = "plugin_enabled"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    plugin_type = Column(String(20), nullable=False)
    name = Column(String(100), nullable=False)
    enabled_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (Index("ix_plugin_enabled_type_name", "plugin_type", "name", unique=True),)

    def __repr__(self) -> str:
        return f"<PluginEnabled({self.plugin_type}/{self.name})>"


class PluginVersion(Base):
    """Installed version of a plugin, written only by the lifecycle manager."""

    __tablename__ = "plugin_versions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    plugin_type = Column(String(20), nullable=False)
    name = Column(String(100), nullable=False)
    version = Column(Integer, nullable=False)
    installed_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (Index("ix_plugin_versions_type_name", "plugin_type", "name", unique=True),)

    def __repr__(self) -> str:
        return f"<PluginVersion({self.plugin_type}/{self.name}={self.version})>"


class PluginSetting(Base):
    """Key/value setting owned by a plugin component (e.g. "module_quiz")."""

    __tablename__ = "plugin_settings"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    component = Column(String(100), nullable=False)
    name = Column(String(100), nullable=False)
    value = Column(Text, nullable=True)

    __table_args__ = (Index("ix_plugin_settings_component_name", "component", "name", unique=True),)


class Capability(Base):
    """
    Named permission declared by a plugin.

    Registered idempotently by name during plugin initialization and never
    deleted automatically. Enforcement lives outside this service.
    """

    __tablename__ = "capabilities"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), unique=True, nullable=False)
    captype = Column(String(10), default="write", nullable=False)  # read | write
    context_level = Column(Integer, default=50, nullable=False)
    component = Column(String(100), nullable=False, index=True)
    risk_bitmask = Column(Integer, default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<Capability(name={self.name}, component={self.component})>"
