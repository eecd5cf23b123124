"""
Remediation rules for failed operations.

Three layers, consulted in order by ``devboot.core.services.advisor``:

    PRIVILEGE_RULES   →  errors whose fix depends on elevation
    COMPONENT_HINTS   →  keyed by exact component name
    GENERIC_RULES     →  error-message categories that apply to anything

Patterns are case-insensitive regular expressions matched anywhere in
the error message.
"""

from __future__ import annotations

# ``privileged``: True = only when running elevated, False = only when not
PRIVILEGE_RULES: list[dict] = [
    {
        "id": "needs_elevation",
        "privileged": False,
        "pattern": (
            r"access (?:is )?denied|permission denied|requires elevation|"
            r"run as administrator|administrator privileges|0x80070005|"
            r"UnauthorizedAccessException"
        ),
        "suggestion": (
            "The operation was denied without elevated rights. Re-run devboot "
            "from an elevated (Administrator) shell."
        ),
    },
    {
        "id": "refuses_elevation",
        "privileged": True,
        "pattern": (
            r"should not be run as admin|running (?:as|with) administrator .*not|"
            r"do not run .* as administrator|elevated .* is not supported"
        ),
        "suggestion": (
            "This tool refuses to run elevated. Re-run devboot from a normal, "
            "non-elevated shell."
        ),
    },
]


COMPONENT_HINTS: dict[str, str] = {
    "oh-my-posh": (
        "If the prompt still looks unchanged, restart the terminal so the "
        "updated PATH is picked up, then run `oh-my-posh --version`."
    ),
    "nerd-font": (
        "Fonts are installed by oh-my-posh; make sure the oh-my-posh "
        "component succeeded first, then select the font in your terminal settings."
    ),
    "PSReadLine": (
        "PSReadLine is loaded by the running shell. Close every PowerShell "
        "window and retry from `pwsh -NoProfile`."
    ),
    "Terminal-Icons": (
        "Trust the gallery first: `Set-PSRepository PSGallery -InstallationPolicy Trusted`."
    ),
    "PSFzf": (
        "PSFzf needs the fzf executable; install the fzf component and restart the shell."
    ),
    "yazi": (
        "yazi previews need `file` and optional helpers (ffmpeg, 7zip); "
        "validate them separately if previews are blank."
    ),
    "scoop": (
        "Install scoop from a non-elevated shell: "
        "`irm get.scoop.sh | iex`."
    ),
}


GENERIC_RULES: list[dict] = [
    {
        "id": "network",
        "category": "network",
        "pattern": (
            r"timed out|timeout|could not resolve|name resolution|"
            r"unable to connect|connection (?:was )?(?:reset|refused|closed)|"
            r"network is unreachable|0x80072ee[27]|InternetOpenUrl failed"
        ),
        "suggestion": (
            "Network problem or slow package source. Check your connection "
            "and proxy settings, then re-run; only unfinished components are retried."
        ),
    },
    {
        "id": "execution_policy",
        "category": "execution_policy",
        "pattern": (
            r"execution polic(?:y|ies)|running scripts is disabled|"
            r"is not digitally signed|PSSecurityException"
        ),
        "suggestion": (
            "PowerShell blocked a script. Allow signed remote scripts for "
            "your user: `Set-ExecutionPolicy -Scope CurrentUser RemoteSigned`."
        ),
    },
    {
        "id": "module_resolution",
        "category": "module_resolution",
        "pattern": (
            r"no match was found for the specified search criteria|"
            r"unable to find module|module .* (?:was not|could not be) (?:found|loaded)|"
            r"is not recognized as (?:the name of )?a cmdlet|PackageManagement"
        ),
        "suggestion": (
            "The module gallery could not resolve the module. Run "
            "`Register-PSRepository -Default` (or `Set-PSRepository PSGallery "
            "-InstallationPolicy Trusted`) and retry."
        ),
    },
    {
        "id": "hash_mismatch",
        "category": "integrity",
        "pattern": r"hash (?:does not match|mismatch)|installer hash",
        "suggestion": (
            "The downloaded installer failed its hash check. Refresh sources "
            "(`winget source update`) and retry later."
        ),
    },
    {
        "id": "package_not_found",
        "category": "not_found",
        "pattern": (
            r"no package found matching|no installed package found|"
            r"couldn't find manifest|couldn't find app"
        ),
        "suggestion": (
            "The package id was not found in the configured source. "
            "Check it with `winget search <name>` and fix components.yml."
        ),
    },
    {
        "id": "file_in_use",
        "category": "resources",
        "pattern": r"being used by another process|file in use|0x80070020",
        "suggestion": "A file is locked by a running program. Close it and retry.",
    },
    {
        "id": "disk_full",
        "category": "resources",
        "pattern": r"not enough (?:disk )?space|disk (?:is )?full|0x80070070",
        "suggestion": "The disk is full. Free some space and retry.",
    },
    {
        "id": "executable_missing",
        "category": "environment",
        "pattern": r"executable not found|not found on path|command not found",
        "suggestion": (
            "A required executable is missing from PATH. Install it (or open "
            "a new shell so PATH is refreshed) and retry."
        ),
    },
]
