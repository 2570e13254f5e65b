import argparse, os, logging
from memory_frames.core.encoder import encode_content
from memory_frames.core.manifest import save_manifest


def write_frames(result, out_dir):
    for frame in result.frames:
        fname = os.path.join(out_dir, f"frame_{frame.metadata.frame_index:05d}.png")
        frame.to_image().save(fname)
    print(f"Generated {len(result.frames)} QR frames "
          f"({result.frames[0].width}x{result.frames[0].height}, "
          f"version {result.frames[0].metadata.qr_version}-{result.frames[0].metadata.qr_error_correction}).")


def main(argv=None):
    ap = argparse.ArgumentParser(description="Encode a file into QR frames for video storage")
    ap.add_argument('--input', required=True, help='File to encode')
    ap.add_argument('--out', required=True, help='Output directory for frames')
    ap.add_argument('--verbose', action='store_true', help='Enable debug logging')
    args = ap.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)
    if not os.path.isfile(args.input):
        raise SystemExit('Input file not found')
    os.makedirs(args.out, exist_ok=True)
    with open(args.input, 'rb') as f:
        data = f.read()
    result = encode_content(data)
    write_frames(result, args.out)
    save_manifest(result, os.path.join(args.out, 'manifest.json'))
    meta = result.metadata
    print(f"{meta.original_size} bytes -> {meta.encoded_size} bytes "
          f"(compressed={meta.is_compressed}, ratio={meta.compression_ratio:.2f})")
    print("Frames written to", args.out)


if __name__ == '__main__':
    main()
