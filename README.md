# tdxtapp

Tools for a trusted application running in a TDX guest:

- **Measured start-up** of a Docker Compose application. The compose content
  is hashed with SHA-256, and so is every host volume it bind-mounts (files
  directly; directories walked recursively, entries sorted by name). The two
  hashes are combined into one measurement. That measurement either extends an
  RTMR or is kept in memory as the application root, which later quotes carry
  in their report data.
- **Quote generation** over up to 32 bytes of caller data.
- **Key derivation.** A secp256k1 key pair is derived from the TD report with
  HKDF-SHA256. The address is the last 20 bytes of the SHA3-256 of the
  uncompressed public key (`0x04` followed by the 64 key bytes). The private
  key is never stored or returned.

## Installation

```
pip install .
```

To run the tests as well:

```
pip install ".[test]"
pytest
```

## Command line

The package installs one command, `tapp-cli`. Its arguments are a category
followed by a command:

```
tapp-cli boost start_app docker-compose.yml report
tapp-cli boost start_app docker-compose.yml rtmr 3
tapp-cli boost measure docker-compose.yml 3
tapp-cli boost quote my_quote.dat
tapp-cli key pubkey
tapp-cli key address
tapp-cli key all
```

- `boost start_app <compose.yml> <mode> [rtmr]` measures the compose file and
  its volumes, then starts the services with `docker compose up -d`. If
  `docker` is not installed or that command fails, it tries `docker-compose`.
  `mode` is `report` or `rtmr`. `rtmr` mode needs an RTMR index from 0 to 3.
  In `report` mode an index is optional and defaults to 3.
- `boost measure <compose.yml> <rtmr>` prints the volume measurement hash and
  starts nothing. The index must be 0 to 3.
- `boost quote [output_file]` writes a quote to `output_file`. The default is
  `quote.dat`.
- `key pubkey`, `key address` and `key all` print the 64-byte public key, the
  20-byte address, or both.

The command exits with status 0 on success and 1 on any error.

If the environment variable `BOOST_TEST_MODE` is set to a non-empty value,
`start_app` does every measurement step but does not launch Docker.

## Library use

```python
from tdxtapp.boost import AttestationMode, BoostLib
from tdxtapp.key_tool import KeyTool

boost = BoostLib()
with open("docker-compose.yml") as fh:
    result = boost.start_app(fh.read(), AttestationMode.REPORT_DATA, 0)
print(result.volumes_hash.hex(), result.app_identifier)

quote = boost.generate_quote(b"nonce")
print(len(quote.quote_data))

keys = KeyTool().get_pubkey_from_report()
print(keys.eth_address_hex)
```

Other helpers:

- `tdxtapp.boost.extract_volume_paths` returns the bind-mounted host paths
  found in compose content.
- `tdxtapp.boost.hash_file` returns the SHA-256 of a file.
- `BoostLib.calculate_directory_hash` returns the hash of a directory tree.
- `BoostLib.calculate_compose_volumes_hash` returns the hash of all the
  volumes in compose content.
- `BoostLib.has_valid_measurement` and `BoostLib.clear_measurement` report on
  and wipe the stored application root.

In RTMR mode, `generate_quote` uses the caller's bytes as report data. If none
are given, it uses a random nonce. In report-data mode, the report data is the
stored 32-byte application root followed by the caller's bytes. It is all
zeros when nothing has been measured yet.

Errors are raised as exceptions:

- `BoostError` carries an `ErrorCode` in `code` and the text in `message`.
- `KeyToolError` comes from key derivation.
- `TdxError` comes from `tdxtapp.tdx`.
- `format_address_hex` raises `ValueError` for an address that is not
  20 bytes.

`tdxtapp.service.TappService` has three request handlers: `start_app`,
`get_quote` and `get_pubkey`. Each returns a response object
(`StartAppResponse`, `QuoteResponse`, `PubkeyResponse`) with a `success` flag
and a message, and never raises. `start_app` replaces an RTMR index outside
0–3 with 3. It accepts the mode either as an `AttestationMode` or as its
integer value.

## What this package does not do

- **No real TDX hardware.** The attestation primitives in `tdxtapp.tdx`
  (`get_report`, `extend_rtmr`, `get_quote`) are a deterministic software
  model. They print `[MOCK] ...` lines to standard output. The same report
  data always gives the same report, so the derived keys are the same on
  every machine. Quotes end in a fixed `MOCK_QUOTE_SIGNATURE` block and are
  not signed.
- **No network server.** `TappService` only provides the handlers. The
  package has no listener, no wire protocol and no server command. The usage
  text of `tapp-cli` mentions a `tapp-server` command, but the package does
  not install one.