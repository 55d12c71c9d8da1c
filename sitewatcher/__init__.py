"""SiteWatcher - watch web sites and collect newly published pages."""
