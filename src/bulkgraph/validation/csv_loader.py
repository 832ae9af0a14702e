"""CSV file loader with structural and per-kind header validation."""

import csv
import io
import logging
import sys

from bulkgraph.exceptions import MalformedCsv, MissingHeaders, MissingRequiredColumn
from bulkgraph.models import EntityKind, ParsedTable, RawFile
from bulkgraph.validation.error_handler import (
    align_row,
    find_duplicate_headers,
    find_missing_columns,
    format_column_list,
    normalize_headers,
)

logger = logging.getLogger(__name__)

# Cells may be arbitrarily long; cap at the largest value a C long accepts everywhere.
csv.field_size_limit(min(sys.maxsize, 2**31 - 1))


class CSVLoader:
    """Parses raw CSV uploads into validated ParsedTable models."""

    def decode(self, raw_file: RawFile) -> str:
        """Decode file bytes as UTF-8, dropping a leading byte-order mark.

        Args:
            raw_file: Uploaded file

        Returns:
            Decoded text

        Raises:
            MalformedCsv: If the bytes are not valid UTF-8
        """
        try:
            return raw_file.content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise MalformedCsv(raw_file.name, f"File is not valid UTF-8: {e}") from e

    def parse(self, raw_file: RawFile) -> ParsedTable:
        """Parse a CSV file into header and data rows.

        The first non-blank record is the header. Blank lines are skipped and
        values are kept as literal strings. A data record that is not
        RFC4180-parseable is logged and skipped; the rest of the file loads.

        Args:
            raw_file: Uploaded file

        Returns:
            ParsedTable with trimmed headers and ordered rows

        Raises:
            MalformedCsv: If the header record is unparseable, headers repeat,
                or every data record failed to parse
            MissingHeaders: If no header columns are found
        """
        text = self.decode(raw_file)
        reader = csv.reader(io.StringIO(text, newline=""), strict=True)

        headers = []
        rows = []
        parse_errors = []
        while True:
            try:
                record = next(reader)
            except StopIteration:
                break
            except csv.Error as e:
                error = f"line {reader.line_num}: {e}"
                if not headers:
                    raise MalformedCsv(raw_file.name, error) from e
                logger.warning(f"Skipping unparseable record in {raw_file.name}, {error}")
                parse_errors.append(error)
                continue

            if not record:
                continue
            if not headers:
                headers = normalize_headers(record)
                if not headers:
                    raise MissingHeaders(raw_file.name)
                duplicates = find_duplicate_headers(headers)
                if duplicates:
                    raise MalformedCsv(
                        raw_file.name,
                        f"Duplicate columns: {format_column_list(duplicates)}",
                    )
                continue
            rows.append(align_row(headers, record, raw_file.name, reader.line_num))

        if not headers:
            raise MissingHeaders(raw_file.name)
        if parse_errors and not rows:
            raise MalformedCsv(raw_file.name, parse_errors[0])
        if parse_errors:
            logger.warning(f"Skipped {len(parse_errors)} unparseable record(s) in {raw_file.name}")

        table = ParsedTable(file_name=raw_file.name, headers=headers, rows=rows)
        logger.info(
            f"Parsed {table.file_name}: {len(table.headers)} columns, {table.row_count} rows"
        )
        logger.debug(f"Headers for {table.file_name}: {table.headers}")
        return table

    def validate(self, table: ParsedTable, kind: EntityKind) -> ParsedTable:
        """Check that a table carries the columns its entity kind requires.

        Validation looks at the header only; rows with an empty grouping
        value are dealt with later by the grouper.

        Args:
            table: Parsed table
            kind: Node or relationship upload

        Returns:
            The same table, for chaining

        Raises:
            MissingRequiredColumn: If any required column is absent
        """
        missing = find_missing_columns(table.headers, kind.required_columns)
        if not missing:
            return table

        found = format_column_list(table.headers)
        if kind is EntityKind.NODE:
            raise MissingRequiredColumn(
                table.file_name,
                missing=missing,
                found=table.headers,
                message=f'File "{table.file_name}" is missing required "LABEL" column',
                details=[
                    'The CSV file must have a column named "LABEL" for the node type.',
                    f"Found columns: {found}",
                ],
            )

        raise MissingRequiredColumn(
            table.file_name,
            missing=missing,
            found=table.headers,
            message=f'File "{table.file_name}" is missing required columns',
            details=[
                f"Required columns: {format_column_list(kind.required_columns)}",
                f"Missing columns: {format_column_list(missing)}",
                f"Found columns: {found}",
            ],
        )

    def load(self, raw_file: RawFile, kind: EntityKind) -> ParsedTable:
        """Parse and validate a file in one step."""
        return self.validate(self.parse(raw_file), kind)
