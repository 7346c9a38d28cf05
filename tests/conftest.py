import io
import os
import tarfile

import pytest

CONFIGURE = """#! /bin/sh
echo configured > configured
"""

def _addFile( archive, name, data, mode = 0o644 ) :

	info = tarfile.TarInfo( name )
	info.size = len( data )
	info.mode = mode
	archive.addfile( info, io.BytesIO( data ) )

@pytest.fixture
def sourceArchive( tmp_path ) :

	"""A gzipped source tree with a single top-level directory
	and an executable `configure` script."""

	path = tmp_path / "archives" / "libfake-1.0.0.tar.gz"
	path.parent.mkdir()

	with tarfile.open( path, "w:gz" ) as archive :
		info = tarfile.TarInfo( "libfake-1.0.0" )
		info.type = tarfile.DIRTYPE
		info.mode = 0o755
		archive.addfile( info )
		_addFile( archive, "libfake-1.0.0/configure", CONFIGURE.encode( "utf-8" ), mode = 0o755 )
		# Incompressible payload so that truncating the archive
		# always cuts into member data.
		_addFile( archive, "libfake-1.0.0/src/payload.bin", os.urandom( 64 * 1024 ) )

	return path

@pytest.fixture
def workDir( tmp_path, monkeypatch ) :

	d = tmp_path / "work"
	d.mkdir()
	monkeypatch.chdir( d )
	return d

@pytest.fixture
def projectConfig( sourceArchive ) :

	return {
		"downloads" : [ sourceArchive.as_uri() ],
		"url" : "https://example.com/libfake",
		"variables" : { "version" : "1.0.0" },
		"commands" : [
			"./configure",
			"echo built > built",
			"echo installed > installed",
		],
	}
