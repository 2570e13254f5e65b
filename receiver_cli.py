import argparse, asyncio, glob, logging, os
from PIL import Image
from memory_frames.core.batch import BatchDecodingOptions
from memory_frames.core.manifest import load_manifest
from memory_frames.core.pixels import PixelGrid
from memory_frames.core.reconstruct import decode_and_reconstruct


def main(argv=None):
    ap = argparse.ArgumentParser(description="Reconstruct a file from captured QR frames")
    ap.add_argument('--frames', required=True, help='Directory containing frame_*.png stills')
    ap.add_argument('--out', required=True, help='Path of the reconstructed file')
    ap.add_argument('--concurrency', type=int, default=4, help='Frames decoded per window')
    ap.add_argument('--timeout-ms', type=int, default=5000, help='Per-frame decode timeout')
    ap.add_argument('--verbose', action='store_true', help='Enable debug logging')
    args = ap.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    if not os.path.isdir(args.frames):
        raise SystemExit('Frames directory not found')

    manifest = None
    manifest_path = os.path.join(args.frames, 'manifest.json')
    if os.path.exists(manifest_path):
        manifest = load_manifest(manifest_path)
        print(f"Loaded manifest: expecting {manifest['metadata']['total_frames']} frames")

    frame_files = sorted(glob.glob(os.path.join(args.frames, "frame_*.png")))
    if not frame_files:
        raise SystemExit("No frames found.")
    print(f"Found {len(frame_files)} frames. Decoding...")

    images = []
    for fp in frame_files:
        with Image.open(fp) as img:
            images.append(PixelGrid.from_image(img))

    def progress(done, total, frame):
        if not frame.is_valid:
            print(f"Failed to decode {os.path.basename(frame_files[frame.frame_index])}: {frame.error}")

    options = BatchDecodingOptions(max_concurrency=args.concurrency, timeout_ms=args.timeout_ms,
                                   progress_callback=progress)
    expected = manifest['metadata']['content_hash'] if manifest else None
    result = asyncio.run(decode_and_reconstruct(images, options, expected_hash=expected))

    if not result.success:
        raise SystemExit(f"Reconstruction failed: {result.error}")

    with open(args.out, 'wb') as f:
        f.write(result.original_content)
    print(f"Reconstructed {result.metadata.original_size} bytes saved to {args.out}")
    if expected:
        status = 'matches' if result.metadata.content_hash == expected else 'DOES NOT match'
        print(f"Content hash {status} manifest")
        if status != 'matches':
            raise SystemExit(1)


if __name__ == '__main__':
    main()
