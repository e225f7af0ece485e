"""
Reparo updates values inside sops-encrypted files in a git repository.

Files are selected with a glob pattern relative to the repository, and the
value is set at a dotted key path in every document of every file. Files are
only re-encrypted, with their original data key, when the value changed.

Update a key in every matching file:

\b
    $ reparo update --file "secrets/*.yaml" --key "image.tag" --value "1.2.3"

Take the value from an environment variable or a file in the repository:

\b
    $ reparo update -f "secrets/*.yaml" -k "db.password" --value-from-env DB_PASSWORD
    $ reparo update -f "config.enc.json" -k "version" --value-from-file VERSION

Create a new encrypted file for a PGP fingerprint and read it back:

\b
    $ export REPARO_RECIPIENTS="0123456789ABCDEF0123456789ABCDEF01234567"
    $ reparo create "secrets/app.yaml" "app.yaml"
    $ reparo cat "secrets/app.yaml"
"""

__version__ = '1.0.0'
