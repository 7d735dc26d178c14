"""Tests for CLI command parsing and chunk splitting."""

import pytest

from cli.chunker import chunk_count, iter_chunks, read_chunk
from cli.models import MergeCommand, ResumeCommand, StatusCommand, UploadCommand
from cli.parser import ParseError, parse_command


class TestParseCommand:

    def test_upload(self):
        assert parse_command('upload ./report.pdf docs') == UploadCommand(file_path='./report.pdf', target_path='docs')

    def test_upload_without_target(self):
        assert parse_command('upload report.pdf') == UploadCommand(file_path='report.pdf')

    def test_upload_quoted_path(self):
        cmd = parse_command('upload "my report.pdf"')
        assert cmd.file_path == 'my report.pdf'

    def test_status(self):
        assert parse_command('status abc') == StatusCommand(transfer_id='abc')

    def test_resume(self):
        assert parse_command('resume f.bin abc out') == ResumeCommand(file_path='f.bin', transfer_id='abc', target_path='out')

    def test_merge(self):
        assert parse_command('merge abc') == MergeCommand(transfer_id='abc')
        assert parse_command('merge abc r.pdf docs') == MergeCommand(transfer_id='abc', filename='r.pdf', target_path='docs')

    @pytest.mark.parametrize('line', [
        '',
        '   ',
        'upload',
        'upload a b c',
        'status',
        'status a b',
        'resume only-file',
        'merge',
        'merge a b c d',
        'frobnicate x',
        'upload "unterminated',
    ])
    def test_invalid(self, line):
        with pytest.raises(ParseError):
            parse_command(line)


class TestChunker:

    @pytest.mark.parametrize('size,chunk_size,expected', [
        (0, 4, 1),
        (1, 4, 1),
        (4, 4, 1),
        (5, 4, 2),
        (2_500_000, 1_048_576, 3),
    ])
    def test_chunk_count(self, size, chunk_size, expected):
        assert chunk_count(size, chunk_size) == expected

    def test_chunk_count_rejects_bad_size(self):
        with pytest.raises(ValueError):
            chunk_count(10, 0)

    def test_iter_chunks(self, sample_file):
        assert list(iter_chunks(str(sample_file), 4)) == [(0, b'0123'), (1, b'4567'), (2, b'89')]

    def test_iter_chunks_empty_file(self, tmp_path):
        empty = tmp_path / 'empty'
        empty.write_bytes(b'')
        assert list(iter_chunks(str(empty), 4)) == [(0, b'')]

    def test_read_chunk(self, sample_file):
        assert read_chunk(str(sample_file), 1, 4) == b'4567'
        assert read_chunk(str(sample_file), 2, 4) == b'89'
