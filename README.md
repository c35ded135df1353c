# wxapkgkit

Tools for working with mini-program `.wxapkg` packages:

- decrypt an encrypted `.wxapkg` from the client cache into its plain form,
  and encrypt a plain package again into the client's on-disk format;
- analyse an unpacked mini-program directory and build a route manifest:
  pages, sub-packages, the tab bar, navigation edges between pages (from
  `<navigator>` tags, tap handlers and `wx.navigateTo`-style calls traced
  through helper functions and imported modules), shared router helpers
  and orphan page scripts.

## Installation

```
pip install wxapkgkit
```

Python 3.10 or newer is required. The only runtime dependency is
`cryptography`.

## Decrypting and encrypting packages

```python
from wxapkgkit.crypto import decrypt_wxapkg, encrypt_wxapkg, InvalidPackageError

app_id = "wxexampleappid00"

try:
    plain = decrypt_wxapkg("__APP__.wxapkg", app_id)
except InvalidPackageError:
    print("not a wxapkg file")
else:
    encrypted = encrypt_wxapkg(plain, app_id)
```

- `decrypt_wxapkg(path, app_id)` reads a file and decrypts it. A package
  that is already in plain form is returned unchanged.
- `decrypt_bytes(data, app_id)` does the same on bytes already in memory.
  It raises `InvalidPackageError` (a `ValueError`) when the data has neither
  the plain-package marks nor the encrypted header, or is truncated.
- `encrypt_wxapkg(data, app_id)` encrypts plain package bytes; it raises
  `ValueError` for an empty app ID.
- `derive_key(app_id)` returns the 32-byte AES key derived from an app ID.

## Mapping pages and routes

Point the analyser at a directory that holds the unpacked project (it needs
an `app.json` or `app-config.json` listing pages or sub-packages):

```python
from wxapkgkit.analyzer.routes import analyze_mini_program

manifest = analyze_mini_program("output/wxexampleappid00", "wxexampleappid00")
print(manifest.summary.total_pages, manifest.summary.navigation_edge_count)

with open("route_manifest.json", "w", encoding="utf-8") as handle:
    handle.write(manifest.to_json())
```

`analyze_mini_program` returns a `RouteManifest` (see
`wxapkgkit.analyzer.models`); `to_dict()` and `to_json()` give its JSON form,
leaving out empty optional fields. A missing or unusable configuration
raises `RouteAnalysisError`.

The optional third argument, `api_extractor`, is a callable that receives a
script's path and contents (bytes) and returns the `ApiEndpoint` entries
found in it; these are attached to each page as direct or indirect API
usage. Without it, pages carry no API usage.

The lower-level pieces can be used on their own: `wxapkgkit.analyzer.wxml`
finds tap actions and navigators in templates, `wxapkgkit.analyzer.navigation`
finds navigation calls in scripts and merges duplicate edges,
`wxapkgkit.analyzer.jsmodule` and `wxapkgkit.analyzer.jsfunctions` index the
functions, imports and exports of a script, and `wxapkgkit.analyzer.tracing`
follows handlers through their calls.

## Command line

```
wxapkgkit-routes --help
```

```
wxapkgkit-routes output/wxexampleappid00 --app-id wxexampleappid00 -o route_manifest.json
```

runs the route analysis on an unpacked directory. Without `-o/--output` the
manifest is printed as JSON; on an unusable configuration the command prints
an error and exits with status 1.

## What this package does not do

- It does not unpack a decrypted `.wxapkg` into its files; the route
  analysis expects a directory that has already been unpacked.
- It does not locate packages in the client's cache, scan for sensitive
  data, or write spreadsheet, HTML or API-collection reports.
- It keeps no registry of unpacked packages and no shared run settings.