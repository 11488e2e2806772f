PROJECTS = [
    {"key": "border", "display": "Border Solar"},
    {"key": "dds", "display": "Don Diego Solar"},
    {"key": "pima", "display": "PIMA Solar"},
    {"key": "rum", "display": "Rumorosa Solar"},
    {"key": "tep", "display": "Tepezalá Solar"},
    {"key": "ventika", "display": "Ventika"},
]
PROJECT_KEYS = [p["key"] for p in PROJECTS]
DEFAULT_PROJECT = PROJECTS[0]["key"]


def configured_names(overrides=None):
    names = {p["key"]: p["display"] for p in PROJECTS}
    if isinstance(overrides, dict):
        names.update({k: v for k, v in overrides.items() if isinstance(v, str) and v.strip()})
    return names


def display_name(project, catalog=None, overrides=None):
    if not project:
        return ""
    name = configured_names(overrides).get(project)
    if name:
        return name
    if catalog is not None and catalog.display_name:
        return catalog.display_name
    return project


def list_projects(overrides=None):
    names = configured_names(overrides)
    return [{"key": key, "display": names[key]} for key in names]
