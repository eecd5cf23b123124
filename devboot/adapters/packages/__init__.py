"""Package-manager providers: native (winget), gallery (pwsh), secondary (scoop)."""
